"""Symbol package resolution for AL apps."""
