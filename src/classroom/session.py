"""Explicit session credentials and the optional cached credential blob.

A ``Session`` is passed into each dispatcher instead of living in a module-wide
global, so independent views and test harnesses never share credentials by
accident. ``SessionManager`` persists one session to disk so a restarted
process can skip the login round-trip.
"""

import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from src.classroom.logging import get_logger

logger = get_logger(__name__)


class Session:
    """Credentials sent with every non-login action."""

    def __init__(
        self,
        username: str = "",
        password: str = "",
        user: dict[str, Any] | None = None,
    ) -> None:
        self.username = username
        self.password = password
        self.user = user or {}

    def has_credentials(self) -> bool:
        return self.username != "" and self.password != ""

    def set_credentials(
        self, username: str, password: str, user: dict[str, Any] | None = None
    ) -> None:
        self.username = username
        self.password = password
        if user is not None:
            self.user = user
        logger.info("session_credentials_set", username=username)

    def clear(self) -> None:
        self.username = ""
        self.password = ""
        self.user = {}
        logger.info("session_cleared")

    def to_dict(self) -> dict[str, Any]:
        return {"username": self.username, "password": self.password, "user": self.user}

    def __repr__(self) -> str:
        return f"Session(username={self.username!r}, authenticated={self.has_credentials()})"


class SessionManager:
    """Manages the cached session blob on disk.

    Saves the session after a successful login and restores it on subsequent
    runs while it is younger than ``max_session_age_hours``.
    """

    def __init__(
        self, state_dir: str = "data/state", max_session_age_hours: int = 24
    ) -> None:
        """Initialize SessionManager.

        Args:
            state_dir: Directory to store the session blob.
            max_session_age_hours: Maximum age of the blob before it is ignored.
        """
        self.state_dir = Path(state_dir)
        self.state_file = self.state_dir / "session.json"
        self.max_session_age_hours = max_session_age_hours

        self.state_dir.mkdir(parents=True, exist_ok=True)

        logger.debug(
            "session_manager_initialized",
            state_file=str(self.state_file),
            max_age_hours=max_session_age_hours,
        )

    def is_session_valid(self) -> bool:
        """Check if a saved session exists and is still fresh.

        Returns:
            True if the blob exists and is younger than max_session_age_hours.
        """
        if not self.state_file.exists():
            logger.debug("session_check", result="missing", reason="file_not_found")
            return False

        file_mtime = datetime.fromtimestamp(self.state_file.stat().st_mtime)
        age = datetime.now() - file_mtime
        max_age = timedelta(hours=self.max_session_age_hours)

        if age > max_age:
            logger.info(
                "session_check",
                result="expired",
                age_hours=age.total_seconds() / 3600,
                max_hours=self.max_session_age_hours,
            )
            return False

        logger.debug(
            "session_check",
            result="valid",
            age_hours=age.total_seconds() / 3600,
        )
        return True

    def save(self, session: Session) -> None:
        """Write the session blob to disk."""
        with open(self.state_file, "w", encoding="utf-8") as f:
            json.dump(session.to_dict(), f)
        logger.info("session_saved", path=str(self.state_file))

    def load(self) -> Session | None:
        """Restore the cached session.

        Returns:
            The cached Session, or None if missing, expired or unreadable.
            An unreadable blob is deleted.
        """
        if not self.is_session_valid():
            return None

        try:
            with open(self.state_file, encoding="utf-8") as f:
                blob = json.load(f)
            session = Session(
                username=blob.get("username") or "",
                password=blob.get("password") or "",
                user=blob.get("user") or {},
            )
        except (OSError, ValueError, AttributeError) as e:
            logger.warning("session_blob_corrupt", error=str(e))
            self.clear()
            return None

        logger.info("session_restored", username=session.username)
        return session

    def clear(self) -> None:
        """Delete the saved session blob."""
        if self.state_file.exists():
            self.state_file.unlink()
            logger.info("session_blob_cleared", path=str(self.state_file))
        else:
            logger.debug("session_clear_skipped", reason="file_not_found")
