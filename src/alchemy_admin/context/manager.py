import logging
from contextvars import ContextVar
from typing import Callable, Optional

from click import style
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import SessionNotFound, StorageError
from .base import SessionManager, Storage

log = logging.getLogger('Admin.context')


class ContextManager:
    """Admin request context manager.

    Binds the `session`, `request` and `db` proxies for the duration of one
    request. The database session is committed when the request succeeds and
    rolled back otherwise; the web session is stored back only after that,
    so its flash messages never outlive a failed commit.
    """

    class Context:
        def __init__(self, manager: 'ContextManager', token: Optional[str], req=None):
            self.token = token
            self.manager = manager
            self.request = req
            self.session: Optional[Storage] = None
            self.db = None

        @property
        def anonymous(self) -> bool:
            return self.session is None

        async def login(self) -> str:
            """Open a new web session for this request, returns its token."""
            if self.token:
                await self.manager.web_session_man.destroy(self.token)
            self.token, self.session = await self.manager.web_session_man.new()
            session.update(self.session)
            return self.token

        async def logout(self) -> None:
            if self.token:
                await self.manager.web_session_man.destroy(self.token)
            self.token, self.session = None, None
            session.update(None)

        async def __aenter__(self):
            if self.token:
                try:
                    self.session = await self.manager.web_session_man.connect(self.token)
                except SessionNotFound:
                    log.debug('Session %s not found, anonymous request', self.token)
                    self.token = None
            session.update(self.session)
            request.update(self.request)
            self.db = self.manager.session_maker()
            db.update(self.db)
            return self

        async def __aexit__(self, exc_type, exc_val, exc_tb):
            try:
                if exc_type is None:
                    try:
                        await self.db.commit()
                    except SQLAlchemyError as exc:
                        log.error('Commit failed, %s', style('transaction rolled back', fg='red'), exc_info=True)
                        raise StorageError('The transaction could not be committed') from exc
                else:
                    await self.db.rollback()
                if self.session is not None:
                    await self.manager.web_session_man.disconnect(self.session, self.token)
            finally:
                await self.db.close()

    def __init__(self, session_maker: Callable, web_session_man: SessionManager):
        self.session_maker = session_maker
        self.web_session_man = web_session_man

    def __call__(self, token: Optional[str] = None, req=None):
        """A context for the request `req`, authenticated by the session `token`."""
        return self.Context(self, token, req)


class ContextProxy:
    def __init__(self, name: str):
        self.__dict__['name'] = name
        self.__dict__['__var'] = ContextVar(name)

    def update(self, obj: object) -> None:
        self.__dict__['__var'].set(obj)

    def current(self):
        return self.__dict__['__var'].get(None)

    def __getattr__(self, item: str):
        return getattr(self.__dict__['__var'].get(), item)

    def __setattr__(self, key, value):
        setattr(self.__dict__['__var'].get(), key, value)

    def __getitem__(self, item):
        return self.__dict__['__var'].get()[item]

    def __setitem__(self, key, value):
        self.__dict__['__var'].get()[key] = value


session = ContextProxy('session')
request = ContextProxy('request')
db = ContextProxy('db_session')
