"""Feature modules: users, clubs, posts."""
