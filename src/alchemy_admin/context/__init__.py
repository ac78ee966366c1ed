from .base import SessionManager, Storage
from .manager import ContextManager, ContextProxy, db, request, session
from .memory import MemorySessionManager
from .redis import RedisSessionManager
