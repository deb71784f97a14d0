"""Database layer: declarative base and engine/session management."""
