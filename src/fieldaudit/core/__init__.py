"""Core services and cross-cutting concerns: database, errors, logging."""
