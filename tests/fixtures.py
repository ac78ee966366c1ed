from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from alchemy_admin import Admin, ContextManager, MemorySessionManager, admin_field
from alchemy_admin.web import AdminRequest

USERNAME, PASSWORD = 'admin', 'secret'


@dataclass
class Person:
    id: int
    name: str = admin_field('search,list')
    age: int = admin_field('list')


@dataclass
class Book:
    id: int
    title: str = admin_field('search,list,label=Title,width=8')
    pages: int = admin_field('width=4,default=100')
    author: Optional['Author'] = admin_field('list')
    published: Optional[datetime] = None


@dataclass
class Author:
    id: int
    name: str = admin_field('search,list')
    rating: float = 0.0
    active: bool = admin_field('default=true', default=True)

    @classmethod
    def admin_name(cls):
        return 'Writer'


@dataclass
class Category:
    id: int
    name: str
    parent: Optional['Category'] = None
    notes: str = admin_field('-', default='')


@pytest.fixture
def engine():
    """Generate an in-memory Sqlite and connects the engine to it."""
    return create_async_engine('sqlite+aiosqlite:///:memory:', poolclass=StaticPool, echo=False)


@pytest.fixture
def session_maker(engine):
    """Creates a database session maker."""
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def context_manager(session_maker):
    """Creates a full context manager."""
    return ContextManager(session_maker, MemorySessionManager())


@pytest.fixture
def admin(context_manager, engine):
    """An admin with nothing registered yet."""
    adm = Admin(context_manager, USERNAME, PASSWORD)
    adm.engine = engine
    return adm


@pytest.fixture
def people_admin(admin):
    """Admin with `Person` registered and completed (tables not created)."""
    admin.group('People').register(Person)
    admin.complete()
    return admin


@pytest.fixture
def library_admin(admin):
    """Admin with a forward reference (Book -> Author) and a self reference."""
    library = admin.group('Library')
    library.register(Book)
    library.register(Author)
    library.register(Category)
    admin.complete()
    return admin


async def login(admin: Admin) -> str:
    """Log in through the index handler and return the session token."""
    response = await admin.dispatch(AdminRequest('POST', f'{admin.path}/',
                                                 form={'username': USERNAME, 'password': PASSWORD}))
    assert response.status == 302
    return response.cookies[admin.cookie_name]
