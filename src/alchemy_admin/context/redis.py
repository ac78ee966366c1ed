from pickle import UnpicklingError, dumps, loads
from typing import Tuple
from uuid import uuid4

from redis.asyncio import Redis

from ..exceptions import SessionNotFound
from .base import SessionManager, Storage


class RedisSessionManager(SessionManager):

    def __init__(self, redis_connection: Redis | str = 'redis://localhost:6379/0',
                 key: str = 'admin-session',
                 duration: int = 3600):
        self.connection = redis_connection if isinstance(redis_connection, Redis) else Redis.from_url(redis_connection)
        self.key = key
        self.duration = duration
        self.session_format = "{self.key}:{token}"

    def _key(self, token: str) -> str:
        return self.session_format.format(self=self, token=token)

    async def connect(self, token: str) -> Storage:
        raw = await self.connection.get(self._key(token))
        if raw is None:
            raise SessionNotFound(token)
        try:
            return Storage(loads(raw))
        except UnpicklingError as exc:
            raise SessionNotFound('Session corrupted') from exc

    async def disconnect(self, session: Storage, token: str) -> None:
        await self.connection.set(self._key(token), session.dumps(), ex=self.duration, xx=True)

    async def new(self, token: str = None) -> Tuple[str, Storage]:
        token = token or str(uuid4())
        while not await self.connection.set(self._key(token), dumps({}), ex=self.duration, nx=True):
            token = str(uuid4())
        return token, Storage({})

    async def destroy(self, token: str) -> None:
        await self.connection.delete(self._key(token))
