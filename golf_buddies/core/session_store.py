"""Simple JSON-backed persistence for the signed-in session."""

from __future__ import annotations

import json
from pathlib import Path

from .models import Session


class SessionStore:
    """Persist the current :class:`Session` between runs.

    The store keeps a single session in a JSON file.  Clearing the store
    removes the file so a signed-out user leaves nothing behind.
    """

    def __init__(self, path: Path) -> None:
        """Initialise storage using JSON file at ``path``."""
        self.path = path

    # ------------------------------------------------------------------
    # Internal helpers
    def _read(self) -> dict | None:
        if not self.path.exists():
            return None
        try:
            return json.loads(self.path.read_text())
        except json.JSONDecodeError:
            return None

    # ------------------------------------------------------------------
    # Session operations
    def load(self) -> Session | None:
        """Return the stored session, or ``None`` if nothing usable is saved."""
        data = self._read()
        if not data:
            return None
        return Session.model_validate(data)

    def save(self, session: Session) -> None:
        """Persist ``session``, replacing any previous one."""
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(session.model_dump(mode="json"), indent=2))
        tmp.replace(self.path)

    def clear(self) -> None:
        """Forget the stored session."""
        self.path.unlink(missing_ok=True)
