"""Core infrastructure: configuration, database, cache, errors and observability."""
