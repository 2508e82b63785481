"""Infrastructure adapters - database, Redis, locks."""
