"""Command-line tools built on pecoff."""
