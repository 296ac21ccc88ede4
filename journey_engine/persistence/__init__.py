"""SQLite schema and journey stores."""
