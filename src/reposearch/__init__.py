"""reposearch: index code repositories and rank their chunks for natural-language tasks."""

__version__ = "0.1.0"
