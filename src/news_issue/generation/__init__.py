"""Content generation for article modules."""
