"""Issue finalization and post-draft lifecycle."""
