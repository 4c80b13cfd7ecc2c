"""Version ordering and resolution models."""
