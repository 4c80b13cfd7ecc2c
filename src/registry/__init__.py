"""Package feed clients."""
