"""API route modules."""

from insightnotes.api.routes import assistant, auth, notes, profile, writings

__all__ = ["assistant", "auth", "notes", "profile", "writings"]
