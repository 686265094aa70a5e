"""Persistence and directory collaborators (abstract protocols + implementations)."""
