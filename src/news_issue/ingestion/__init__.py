"""Candidate sources and catalog loading."""
