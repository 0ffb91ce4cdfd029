"""Core algorithms: chunking, tokenization, scoring, fusion and boosts."""
