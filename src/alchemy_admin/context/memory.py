import asyncio
import time
from pickle import loads
from typing import Dict, Tuple
from uuid import uuid4

from ..exceptions import SessionNotFound
from .base import SessionManager, Storage


class MemorySessionManager(SessionManager):
    """Process-local sessions; the mapping is only touched under a lock."""

    def __init__(self, duration: int = 3600):
        self.duration = duration
        self._sessions: Dict[str, Tuple[float, bytes]] = {}
        self._lock = asyncio.Lock()

    def _sweep(self) -> None:
        """Drop the expired sessions; call with the lock held."""
        now = time.monotonic()
        for token in [token for token, (expires, _) in self._sessions.items() if expires < now]:
            del self._sessions[token]

    async def connect(self, token: str) -> Storage:
        async with self._lock:
            stored = self._sessions.get(token)
            if stored is None:
                raise SessionNotFound(token)
            expires, raw = stored
            if expires < time.monotonic():
                del self._sessions[token]
                raise SessionNotFound(token)
        return Storage(loads(raw))

    async def disconnect(self, session: Storage, token: str) -> None:
        async with self._lock:
            if token in self._sessions:
                self._sessions[token] = (time.monotonic() + self.duration, session.dumps())

    async def new(self, token: str = None) -> Tuple[str, Storage]:
        session = Storage()
        async with self._lock:
            self._sweep()
            token = token or str(uuid4())
            while token in self._sessions:
                token = str(uuid4())
            self._sessions[token] = (time.monotonic() + self.duration, session.dumps())
        return token, session

    async def destroy(self, token: str) -> None:
        async with self._lock:
            self._sessions.pop(token, None)

    def __len__(self):
        return len(self._sessions)
