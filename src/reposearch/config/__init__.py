"""Configuration: schema (reposearch.config.schema) and loading (reposearch.config.loader)."""
