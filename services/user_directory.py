"""User Directory - the registered users, kept as one JSON array document.

Record shape: {"id", "name", "email", "createdAt"} with createdAt in epoch
milliseconds. Emails are unique case-insensitively; the check happens under
the write lock, not in storage.
"""
import asyncio
import json
import logging
import os
import secrets
import tempfile
import time
from typing import Dict, List, Optional

from services.errors import Conflict, DirectoryError

logger = logging.getLogger(__name__)


def _same_email(a: str, b: str) -> bool:
    return a.lower() == b.lower()


class UserDirectory:
    def __init__(self, path: str):
        self.path = path
        self._write_lock: Optional[asyncio.Lock] = None
        self._lock_loop = None

    # --- file helpers (blocking; always run through asyncio.to_thread) ---
    def _read(self) -> List[Dict]:
        if not os.path.exists(self.path):
            self._write([])
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load {self.path}: {e}")
            raise DirectoryError(f"cannot read {self.path}") from e
        if not isinstance(data, list):
            logger.error(f"{self.path} does not hold a JSON array")
            raise DirectoryError(f"{self.path} is not a user list")
        return data

    def _write(self, users: List[Dict]) -> None:
        folder = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(folder, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=folder, prefix=".users-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(users, f, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error(f"Failed to save {self.path}: {e}")
            raise DirectoryError(f"cannot write {self.path}") from e

    def _lock(self) -> asyncio.Lock:
        # an asyncio.Lock belongs to one event loop; make one for the loop actually running
        loop = asyncio.get_running_loop()
        if self._write_lock is None or self._lock_loop is not loop:
            self._write_lock = asyncio.Lock()
            self._lock_loop = loop
        return self._write_lock

    # --- public API ---
    async def load(self) -> List[Dict]:
        return await asyncio.to_thread(self._read)

    async def save(self, users: List[Dict]) -> None:
        await asyncio.to_thread(self._write, users)

    async def find_by_email(self, email: str) -> Optional[Dict]:
        users = await self.load()
        return next((u for u in users if _same_email(u.get("email", ""), email)), None)

    async def exists(self, email: str) -> bool:
        return await self.find_by_email(email) is not None

    async def add_user(self, name: str, email: str) -> Dict:
        """Append a new user; raises Conflict on a duplicate email, DirectoryError on I/O failure."""
        async with self._lock():
            users = await self.load()
            if any(_same_email(u.get("email", ""), email) for u in users):
                raise Conflict("User already exists", code="user_exists")
            user = {
                "id": secrets.token_hex(8),
                "name": name,
                "email": email,
                "createdAt": int(time.time() * 1000),
            }
            await self.save(users + [user])
        logger.info(f"Registered user {user['id']} ({email})")
        return user
