"""Command-line tools for poremodel."""
