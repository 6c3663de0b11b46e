"""
auth/memory.py -- In-process SessionStore.

Used by unit tests and by single-process deployments that do not need
persistence. Every method takes one threading.Lock, which makes
swap_session_fingerprint()'s read-compare-write atomic with respect to
concurrent refresh, logout and password change calls in the same process.

Principals are copied on the way in and on the way out so callers only ever
hold snapshots, matching the SQL adapter.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone

from auth.errors import DuplicatePrincipal
from auth.models import Principal


class InMemoryUserStore:
    """Dictionary-backed SessionStore."""

    def __init__(self) -> None:
        self._users: dict[int, Principal] = {}
        self._fingerprints: dict[int, str | None] = {}
        self._seq = 0
        self._lock = threading.Lock()

    # -------------------------- principals --------------------------

    def find_by_id(self, user_id: int) -> Principal | None:
        with self._lock:
            p = self._users.get(user_id)
            return replace(p) if p else None

    def find_by_username_or_email(self, identifier: str) -> Principal | None:
        with self._lock:
            for p in self._users.values():
                if identifier in (p.username, p.email):
                    return replace(p)
            return None

    def create_user(self, principal: Principal) -> int:
        with self._lock:
            for p in self._users.values():
                if principal.username == p.username or principal.email == p.email:
                    raise DuplicatePrincipal()
            self._seq += 1
            self._users[self._seq] = replace(
                principal,
                id=self._seq,
                created_at=datetime.now(timezone.utc).isoformat(),
            )
            self._fingerprints[self._seq] = None
            return self._seq

    def delete_user(self, user_id: int) -> bool:
        with self._lock:
            self._fingerprints.pop(user_id, None)
            return self._users.pop(user_id, None) is not None

    def replace_password(self, user_id: int, hashed_password: str) -> bool:
        with self._lock:
            p = self._users.get(user_id)
            if p is None:
                return False
            self._users[user_id] = replace(p, hashed_password=hashed_password)
            self._fingerprints[user_id] = None
            return True

    # ------------------------ session record ------------------------

    def get_session_fingerprint(self, user_id: int) -> str | None:
        with self._lock:
            return self._fingerprints.get(user_id)

    def set_session_fingerprint(self, user_id: int, fingerprint: str | None) -> None:
        with self._lock:
            if user_id in self._users:
                self._fingerprints[user_id] = fingerprint

    def swap_session_fingerprint(self, user_id: int, expected: str, new: str) -> bool:
        with self._lock:
            current = self._fingerprints.get(user_id)
            if user_id not in self._users or current is None or current != expected:
                return False
            self._fingerprints[user_id] = new
            return True
