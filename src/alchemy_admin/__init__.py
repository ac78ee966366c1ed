from .admin import Admin
from .app_config import default_config, setup_admin
from .context import ContextManager, MemorySessionManager, RedisSessionManager
from .exceptions import AdminException, ConfigError, NotFoundError, RegistrationError, StorageError, \
    TagParseError, ValidationError
from .fields import BooleanField, CustomFields, Field, FileField, FileHandlerField, FloatField, ForeignKeyField, \
    IntField, TextField, TimeField
from .models import Model, ModelGroup
from .registry import Registry, admin_field
from .web import AdminRequest, Response, UploadedFile
