"""Core domain: models, id derivation, caching, errors and ports."""
