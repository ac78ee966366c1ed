from pickle import dumps
from typing import List, Tuple


class Storage(dict):
    """Session data, readable as attributes."""

    def __getattr__(self, item):
        try:
            return self[item]
        except KeyError as exc:
            raise AttributeError(item) from exc

    def __setattr__(self, key, value):
        self[key] = value

    def __delattr__(self, item):
        try:
            del self[item]
        except KeyError as exc:
            raise AttributeError(item) from exc

    def add_message(self, level: str, text: str) -> None:
        """Queue a flash message for the next rendered page."""
        self.setdefault('messages', []).append((level, text))

    def pop_messages(self) -> List[Tuple[str, str]]:
        return self.pop('messages', [])

    def dumps(self) -> bytes:
        return dumps(dict(self))


class SessionManager:

    async def connect(self, token: str) -> Storage:
        """Load the session stored under `token`, raise `SessionNotFound` if missing."""
        raise NotImplementedError

    async def disconnect(self, session: Storage, token: str) -> None:
        """Store the session object back."""
        raise NotImplementedError

    async def new(self, token: str = None) -> Tuple[str, Storage]:
        """Generate a new session object and its token."""
        raise NotImplementedError

    async def destroy(self, token: str) -> None:
        raise NotImplementedError
