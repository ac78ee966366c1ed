from typing import Any, Dict

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from .admin import Admin
from .context import ContextManager, MemorySessionManager, RedisSessionManager
from .exceptions import ConfigError
from .utils import dict_merge, load_class

default_config = dict(
    admin=dict(
        path='/admin',
        title='Admin',
        username=None,
        password=None,
        cookie_name='admin',
        upload_dir='uploads',
        template_dir=None,
        name_transform=None,
    ),
    db_engine=dict(
        url='sqlite+aiosqlite:///admin.db',
    ),
    sessions=dict(
        backend='memory',
        redis_url='redis://localhost:6379/0',
        duration=3600,
    ),
)


def session_manager(config: Dict[str, Any]):
    backend = config['backend']
    if backend == 'memory':
        return MemorySessionManager(duration=config['duration'])
    if backend == 'redis':
        return RedisSessionManager(config['redis_url'], duration=config['duration'])
    raise ConfigError(f'Unknown session backend "{backend}"')


def setup_admin(config: Dict[str, Any] = None, engine=None) -> Admin:
    """Set up the database, the sessions and return the (empty) admin."""
    config = dict_merge(config or {}, default_config)
    admin_config = dict(config['admin'])

    if not admin_config['username'] or not admin_config['password']:
        raise ConfigError('Username and/or password is missing')

    name_transform = admin_config.pop('name_transform')
    if isinstance(name_transform, str):
        name_transform = load_class(name_transform)

    if engine is None:
        db_config = dict(config['db_engine'])
        db_url = db_config.pop('url')
        engine = create_async_engine(db_url, **db_config)
    session_maker = async_sessionmaker(bind=engine, expire_on_commit=False)

    context = ContextManager(session_maker, session_manager(config['sessions']))
    admin = Admin(context, name_transform=name_transform, **admin_config)
    admin.engine = engine
    return admin
