"""Four-stage duplicate detection for issue candidates."""
