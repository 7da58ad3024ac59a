"""Infrastructure adapters: SQLite persistence, HTTP clients and logging."""
