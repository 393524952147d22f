"""SQLite storage layer: SQLModel tables, engine policy and migrations."""
