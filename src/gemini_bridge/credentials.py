"""Authentication method detection.

The resolver decides which backend serves a request by looking, in order, at
an explicit API key, a ``.env``-style credential file and the Gemini CLI's
stored Google account.  It only inspects local state and is consulted on every
request so that keys written while the server runs are picked up.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Union

logger = logging.getLogger(__name__)

API_KEY_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY")

_KEY_LINE = re.compile(r"^GEMINI_API_KEY=(.+)$", re.MULTILINE)

# Project root (the directory holding src/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DEFAULT_CREDENTIAL_FILE = PROJECT_ROOT / ".env"
DEFAULT_ACCOUNTS_FILE = Path.home() / ".gemini" / "google_accounts.json"


@dataclass(frozen=True)
class DirectCredential:
    secret: str

    def __repr__(self) -> str:
        return "DirectCredential(secret='***')"


@dataclass(frozen=True)
class DelegatedCredential:
    account_label: str


@dataclass(frozen=True)
class NoCredential:
    pass


CredentialState = Union[DirectCredential, DelegatedCredential, NoCredential]


class CredentialResolver:
    """Resolve the active credential from local state."""

    def __init__(
        self,
        api_key: str | None = None,
        credential_file: Path | str | None = DEFAULT_CREDENTIAL_FILE,
        accounts_file: Path | str | None = DEFAULT_ACCOUNTS_FILE,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._api_key = api_key
        self._credential_file = Path(credential_file) if credential_file else None
        self._accounts_file = Path(accounts_file) if accounts_file else None
        self._environ = environ

    def resolve(self) -> CredentialState:
        secret = self._explicit_secret() or self._file_secret()
        if secret:
            return DirectCredential(secret=secret)

        account = self._active_account()
        if account:
            return DelegatedCredential(account_label=account)

        return NoCredential()

    def _explicit_secret(self) -> str | None:
        if self._api_key and self._api_key.strip():
            return self._api_key.strip()
        env = os.environ if self._environ is None else self._environ
        for var in API_KEY_VARS:
            value = env.get(var, "").strip()
            if value:
                return value
        return None

    def _file_secret(self) -> str | None:
        if self._credential_file is None:
            return None
        try:
            content = self._credential_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None
        match = _KEY_LINE.search(content)
        if not match:
            return None
        value = match.group(1).strip().strip("\"'")
        return value or None

    def _active_account(self) -> str | None:
        if self._accounts_file is None:
            return None
        try:
            data = json.loads(self._accounts_file.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug("Ignoring accounts file %s: %s", self._accounts_file, e)
            return None
        if not isinstance(data, dict):
            return None
        active = data.get("active")
        if isinstance(active, str) and active.strip():
            return active.strip()
        return None


def describe(state: CredentialState) -> str:
    """Human-readable label for a credential state."""
    if isinstance(state, DirectCredential):
        return "API key (direct HTTP)"
    if isinstance(state, DelegatedCredential):
        return f"OAuth ({state.account_label}) via gemini CLI"
    return "not authenticated"
