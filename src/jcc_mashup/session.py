"""Session store for cached portal cookies.

SessionStore maps opaque tokens to the cookies captured by a successful login,
expires them after a fixed age, and persists the whole mapping to a JSON file
so a restart does not force everyone to log in again.
"""

import json
import os
import secrets
import tempfile
import threading
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from src.jcc_mashup.errors import PersistenceError
from src.jcc_mashup.logging import get_logger
from src.jcc_mashup.models import SessionRecord, now_ms

logger = get_logger(__name__)

_RECORDS = TypeAdapter(dict[str, SessionRecord])


class SessionStore:
    """Token-keyed cache of upstream cookie sets with JSON file persistence.

    Writes only mark the store dirty; flush() (called periodically and at
    shutdown) writes the file. Every public method takes the store lock, since
    request handlers and the background flush run on different threads.
    """

    def __init__(self, path: str | Path | None, max_age_ms: int) -> None:
        """Initialize SessionStore.

        Args:
            path: JSON file used for persistence, or None to keep sessions in memory only.
            max_age_ms: Maximum age of a session before it is treated as absent.
        """
        self.path = Path(path) if path is not None else None
        self.max_age_ms = max_age_ms
        self._records: dict[str, SessionRecord] = {}
        self._lock = threading.Lock()
        self._dirty = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._records

    def is_expired(self, record: SessionRecord, now: int | None = None) -> bool:
        """Check a record against the fixed maximum age (no sliding renewal)."""
        return record.is_expired(self.max_age_ms, now)

    def put(self, cookies: dict[str, str]) -> str:
        """Store a freshly captured cookie set under a new token.

        Args:
            cookies: Cookie name to value mapping from a successful login.

        Returns:
            The opaque token identifying the new session.
        """
        token = secrets.token_urlsafe(32)
        record = SessionRecord(cookies=dict(cookies), timestamp=now_ms())
        with self._lock:
            self._records[token] = record
            self._dirty = True
        logger.info("session_created", cookie_names=sorted(cookies), sessions=len(self))
        return token

    def get(self, token: str | None) -> SessionRecord | None:
        """Look up a session, purging it if it has aged out.

        Returns:
            The session record, or None when the token is unknown or expired.
        """
        if not token:
            return None
        with self._lock:
            record = self._records.get(token)
            if record is None:
                return None
            if self.is_expired(record):
                del self._records[token]
                self._dirty = True
                expired = True
            else:
                expired = False
        if expired:
            logger.info(
                "session_expired",
                age_days=round(record.age_ms() / 86_400_000, 1),
                max_age_days=round(self.max_age_ms / 86_400_000, 1),
            )
            return None
        return record

    def delete(self, token: str | None) -> bool:
        """Drop a session. Returns True if the token was known."""
        if not token:
            return False
        with self._lock:
            removed = self._records.pop(token, None) is not None
            if removed:
                self._dirty = True
        if removed:
            logger.info("session_deleted")
        return removed

    def load(self) -> int:
        """Replace in-memory sessions with the contents of the session file.

        A missing file yields an empty store. An unreadable or malformed file
        is logged and also yields an empty store. Expired records are dropped.

        Returns:
            Number of sessions loaded.
        """
        if self.path is None:
            return 0
        try:
            records = self._read_file()
        except PersistenceError as e:
            logger.warning("session_load_failed", path=str(self.path), error=e.details)
            records = {}

        now = now_ms()
        fresh = {t: r for t, r in records.items() if not self.is_expired(r, now)}
        with self._lock:
            self._records = fresh
            self._dirty = len(fresh) != len(records)

        logger.info(
            "session_store_loaded",
            path=str(self.path),
            sessions=len(fresh),
            dropped_expired=len(records) - len(fresh),
        )
        return len(fresh)

    def flush(self, force: bool = False) -> bool:
        """Write sessions to the session file if anything changed.

        Args:
            force: Write even when nothing changed since the last flush.

        Returns:
            True if the file is up to date, False if writing failed.
        """
        if self.path is None:
            return True
        with self._lock:
            if not (self._dirty or force):
                return True
            payload = _RECORDS.dump_python(self._records, mode="json")
            self._dirty = False

        try:
            self._write_file(payload)
        except PersistenceError as e:
            logger.error("session_flush_failed", path=str(self.path), error=e.details)
            with self._lock:
                self._dirty = True
            return False

        logger.debug("session_store_flushed", path=str(self.path), sessions=len(payload))
        return True

    def _read_file(self) -> dict[str, SessionRecord]:
        assert self.path is not None
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return _RECORDS.validate_python(raw)
        except (OSError, ValueError, ValidationError) as e:
            raise PersistenceError("Could not read session file", details=str(e)) from e

    def _write_file(self, payload: dict) -> None:
        assert self.path is not None
        tmp: Path | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_str = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
            tmp = Path(tmp_str)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            tmp.replace(self.path)
        except OSError as e:
            if tmp is not None:
                tmp.unlink(missing_ok=True)
            raise PersistenceError("Could not write session file", details=str(e)) from e
