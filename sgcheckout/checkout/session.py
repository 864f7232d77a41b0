"""Client-side session storage.

`SessionStore` is the only component that writes session state. Everything
else (the auth gate, the API client) receives it as a dependency and reads
through it. With a file path it persists as one JSON document; without one it
lives in memory.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

USER_KEY = "user"
TOKEN_KEY = "firebaseToken"
SESSION_ID_KEY = "sg_session_id"
SESSION_KEYS = (USER_KEY, TOKEN_KEY, SESSION_ID_KEY)


class SessionStore:
    def __init__(self, path: Optional[str] = None):
        self._path = Path(path) if path else None
        self._data = {}
        if self._path and self._path.exists():
            self._load()

    def _load(self):
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable session file %s", self._path)
            return
        if isinstance(data, dict):
            self._data = {k: v for k, v in data.items() if k in SESSION_KEYS}

    def _flush(self):
        if not self._path:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(self._path.parent), prefix=".session-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh)
            os.replace(tmp_name, self._path)
        except OSError:
            logger.exception("Could not persist session to %s", self._path)
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)

    # Reads

    @property
    def user(self) -> Optional[dict]:
        return self._data.get(USER_KEY)

    @property
    def token(self) -> Optional[str]:
        return self._data.get(TOKEN_KEY)

    @property
    def session_id(self) -> Optional[str]:
        return self._data.get(SESSION_ID_KEY)

    def auth_headers(self) -> dict:
        headers = {}
        bearer = self.session_id or self.token
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    # Writes

    def save_user(self, user: dict):
        self._data[USER_KEY] = user
        self._flush()

    def save_login(self, token: str, user: Optional[dict] = None):
        self._data[SESSION_ID_KEY] = token
        if user is not None:
            self._data[USER_KEY] = user
        self._flush()

    def set_token(self, token: Optional[str]):
        if token:
            self._data[TOKEN_KEY] = token
        else:
            self._data.pop(TOKEN_KEY, None)
        self._flush()

    def clear(self):
        if not self._data:
            return
        self._data = {}
        self._flush()
