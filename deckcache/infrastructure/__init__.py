"""Couche infrastructure : persistance SQLite via SQLModel."""
