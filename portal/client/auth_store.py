# portal/client/auth_store.py

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

DEFAULT_STATE_DIR = Path.home() / ".psu-portal"


class AuthStore:
    """
    Holds the bearer token and the signed-in user.

    With remember-me the pair is written to `credentials.json` and survives
    restarts; otherwise it lives only in this object. Logging out clears both.
    """

    def __init__(self, state_dir: Optional[Path] = None):
        self.state_dir = Path(state_dir) if state_dir else DEFAULT_STATE_DIR
        self.credentials_file = self.state_dir / "credentials.json"
        self.token: Optional[str] = None
        self.user: Optional[Dict[str, Any]] = None
        self.remember_me = False
        self._load()

    def _load(self) -> None:
        if not self.credentials_file.exists():
            return
        try:
            data = json.loads(self.credentials_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not load stored credentials: {e}")
            return
        self.token = data.get("token")
        self.user = data.get("user")
        self.remember_me = bool(self.token)

    def save(self, token: str, user: Dict[str, Any], remember_me: bool = False) -> None:
        self.token = token
        self.user = user
        self.remember_me = remember_me

        if not remember_me:
            self._delete_file()
            return

        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.credentials_file.write_text(json.dumps({"token": token, "user": user}, indent=2), encoding="utf-8")
        try:
            os.chmod(self.credentials_file, 0o600)
        except OSError:
            logger.debug("chmod not supported for credentials file")

    def update_user(self, user: Dict[str, Any]) -> None:
        if self.token:
            self.save(self.token, user, self.remember_me)

    def clear(self) -> None:
        self.token = None
        self.user = None
        self.remember_me = False
        self._delete_file()

    def _delete_file(self) -> None:
        if self.credentials_file.exists():
            self.credentials_file.unlink()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}
