"""Weighted multi-criteria scoring and candidate assignment."""
