"""Pipelines: the indexing write path and the query read path."""
