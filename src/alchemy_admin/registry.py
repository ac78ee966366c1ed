"""Model registration: turns dataclasses into `Model` metadata.

Registration happens in two phases. `register_model` walks the fields of a
dataclass once, building its `Field` list and recording the foreign keys
whose target isn't registered yet; `complete` then binds the class names
no namespace could resolve, checks every pending foreign key was resolved
and derives the SQLAlchemy tables. Nothing may be served before
`complete` succeeds.
"""
import builtins
import dataclasses
import inspect
import logging
import re
import sys
import types
from datetime import date, datetime, time
from decimal import Decimal
from typing import Annotated, Any, Callable, Dict, ForwardRef, List, NamedTuple, Optional, Union, get_args, \
    get_origin, get_type_hints

from click import style
from sqlalchemy import MetaData

from .exceptions import RegistrationError
from .fields import BooleanField, CustomFields, Field, FloatField, ForeignKeyField, IntField, TextField, TimeField
from .models import Model, ModelGroup
from .tags import FieldOptions
from .utils import slugify

log = logging.getLogger('Admin.registry')

TAG_KEY = 'admin'
FK_SUFFIX = 'Id'

BUILTIN_NAMES = {
    'str': str, 'int': int, 'float': float, 'bool': bool, 'Decimal': Decimal,
    'datetime': datetime, 'date': date, 'time': time,
}
OPTIONAL_STRING = re.compile(r'^(?:Optional\[(?P<inner>.+)\]|(?P<left>.+?)\s*\|\s*None|None\s*\|\s*(?P<right>.+))$')
IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_.]*$')


class ForwardName(NamedTuple):
    """A class name no namespace could resolve, waiting for its dataclass."""
    name: str
    module: str

    def __str__(self):
        return self.name


def admin_field(tag: str = '', **kwargs) -> dataclasses.Field:
    """A dataclass field carrying the `admin` tag."""
    metadata = dict(kwargs.pop('metadata', None) or {})
    metadata[TAG_KEY] = tag
    return dataclasses.field(metadata=metadata, **kwargs)


def _lookup(namespace: Dict[str, Any], dotted: str):
    """Resolve `a.b.C` in `namespace`, `None` when a part is missing."""
    head, *rest = dotted.split('.')
    obj = namespace.get(head)
    for part in rest:
        if obj is None:
            break
        obj = getattr(obj, part, None)
    return obj


def _resolve_string(annotation: str, namespace: Dict[str, Any]):
    """Resolve a string annotation into an object, or a class name when nothing defines it."""
    annotation = annotation.strip().strip('\'"')
    match = OPTIONAL_STRING.match(annotation)
    if match:
        return _resolve_string(next(group for group in match.groups() if group), namespace)
    if not IDENTIFIER.match(annotation):
        return annotation
    found = _lookup(namespace, annotation)
    if found is not None and not isinstance(found, types.ModuleType):
        return _unwrap(found, namespace)
    if annotation in BUILTIN_NAMES:
        return BUILTIN_NAMES[annotation]
    if isinstance(getattr(builtins, annotation, None), type):
        return getattr(builtins, annotation)
    return ForwardName(annotation.rsplit('.', 1)[-1], namespace.get('__name__', ''))


def _unwrap(annotation, namespace: Dict[str, Any]):
    """Strip `Annotated` and `Optional` wrappers, resolve forward references."""
    origin = get_origin(annotation)
    if origin is Annotated:
        return _unwrap(get_args(annotation)[0], namespace)
    if origin is Union or origin is getattr(types, 'UnionType', None):
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return _unwrap(args[0], namespace)
        return annotation
    if isinstance(annotation, ForwardRef):
        return _resolve_string(annotation.__forward_arg__, namespace)
    if isinstance(annotation, str):
        return _resolve_string(annotation, namespace)
    return annotation


def _fk_target(annotation) -> Optional[Any]:
    """The referenced model (class or unresolved name) if `annotation` is a foreign key."""
    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
        return annotation
    if isinstance(annotation, ForwardName):
        return annotation
    return None


def _default_field(annotation) -> Optional[Field]:
    if not isinstance(annotation, type):
        return None
    if issubclass(annotation, bool):
        return BooleanField()
    if issubclass(annotation, int):
        return IntField()
    if issubclass(annotation, (float, Decimal)):
        return FloatField()
    if issubclass(annotation, str):
        return TextField()
    if issubclass(annotation, datetime):
        return TimeField('datetime')
    if issubclass(annotation, date):
        return TimeField('date')
    if issubclass(annotation, time):
        return TimeField('time')
    return None


class Registry:
    """Registered models, their groups and the foreign keys still waiting for a target."""

    def __init__(self, name_transform: Callable[[str], str] = None, custom_fields: CustomFields = None):
        self.name_transform = name_transform
        self.custom_fields = custom_fields or CustomFields()
        self.models: Dict[str, Model] = {}
        self.groups: List[ModelGroup] = []
        self.registered: Dict[type, Model] = {}
        self.missing: Dict[ForeignKeyField, Any] = {}
        self.metadata = MetaData()
        self.completed = False

    def transform(self, name: str) -> str:
        return self.name_transform(name) if self.name_transform else name

    def group(self, name: str) -> ModelGroup:
        """Add a model group to the front page."""
        self._check_open()
        group = ModelGroup(self, name, slugify(name))
        self.groups.append(group)
        return group

    def _check_open(self):
        if self.completed:
            raise RegistrationError('Registration is already completed')

    def _registered_target(self, target) -> Optional[Model]:
        if isinstance(target, ForwardName):
            # only a class of the same module binds before `complete`
            return next((m for t, m in self.registered.items()
                         if t.__name__ == target.name and t.__module__ == target.module), None)
        return self.registered.get(target)

    def _bind_pending(self, model_type: type, model: Model) -> None:
        """Bind every pending foreign key targeting `model_type`."""
        for field, target in tuple(self.missing.items()):
            if isinstance(target, ForwardName):
                if (target.name, target.module) != (model_type.__name__, model_type.__module__):
                    continue
            elif target is not model_type:
                continue
            field.model = model
            del self.missing[field]
            log.debug('Resolved foreign key %s -> %s', field.name, model.name)

    def _bind_by_name(self) -> None:
        """Bind the names still pending to the only registered class carrying them."""
        for field, target in tuple(self.missing.items()):
            if not isinstance(target, ForwardName):
                continue
            candidates = [(t, m) for t, m in self.registered.items() if t.__name__ == target.name]
            if len(candidates) > 1:
                modules = ', '.join(t.__module__ for t, _ in candidates)
                raise RegistrationError(f'Ambiguous foreign key {field.name} -> {target.name}: '
                                        f'defined in {modules}')
            if candidates:
                field.model = candidates[0][1]
                del self.missing[field]
                log.debug('Resolved foreign key %s -> %s', field.name, field.model.name)

    def _model_names(self, handle, model_type: type):
        type_name = model_type.__name__
        table_name = getattr(model_type, '__tablename__', None) or self.transform(type_name)
        name = type_name
        named = getattr(handle, 'admin_name', None)
        if callable(named):
            static = inspect.getattr_static(model_type, 'admin_name')
            if handle is not model_type or isinstance(static, (classmethod, staticmethod)):
                name = named()
        return name, table_name

    def _hints(self, model_type: type) -> Dict[str, Any]:
        try:
            return get_type_hints(model_type, include_extras=True)
        except (NameError, TypeError):
            return {f.name: f.type for f in dataclasses.fields(model_type)}

    def register_model(self, group: ModelGroup, handle) -> Model:
        """Introspect the dataclass `handle` (type or instance) and add it to `group`."""
        self._check_open()
        if not dataclasses.is_dataclass(handle):
            raise RegistrationError(f'{handle!r} is not a dataclass')
        model_type = handle if isinstance(handle, type) else type(handle)

        name, table_name = self._model_names(handle, model_type)
        model = Model(name=name, slug=slugify(name), table_name=table_name, model_type=model_type,
                      instance=None if handle is model_type else handle)
        if model.slug in self.models:
            raise RegistrationError(f'Slug "{model.slug}" is already used by {self.models[model.slug].name}')

        # Registered first, so self references resolve right away
        self.registered.setdefault(model_type, model)
        self._bind_pending(model_type, model)

        hints = self._hints(model_type)
        module = sys.modules.get(model_type.__module__)
        namespace = vars(module) if module is not None else {}
        for position, dc_field in enumerate(dataclasses.fields(model_type)):
            options = FieldOptions.from_tag(dc_field.metadata.get(TAG_KEY))
            if options.skip:
                if position == 0:
                    raise RegistrationError(f"{name}: first column can't be skipped")
                continue

            annotation = _unwrap(hints.get(dc_field.name, dc_field.type), namespace)
            target = _fk_target(annotation)

            field_name = dc_field.name
            if target is not None:
                field_name += FK_SUFFIX

            if options.field:
                field = self.custom_fields.create(options.field)
            elif target is not None:
                field = ForeignKeyField()
                bound = self._registered_target(target)
                if bound is not None:
                    field.model = bound
                else:
                    self.missing[field] = target
            else:
                field = _default_field(annotation)
                if field is None:
                    log.warning('Unknown field type %s for %s.%s, using text',
                                style(repr(annotation), fg='red'), name, dc_field.name)
                    field = TextField()

            field.name = field_name
            field.column_name = self.transform(field_name)
            field.configure(options)
            if position == 0:
                field.list = True
            model.add_field(field)

        model.freeze()
        self.models[model.slug] = model
        group.models.append(model)
        log.info('Registered %s', style(model.name, fg='blue'))
        return model

    def complete(self) -> MetaData:
        """Second registration phase: check every foreign key and derive the tables."""
        self._check_open()
        self._bind_by_name()
        if self.missing:
            pending = ', '.join(
                f'{field.name} -> {target if isinstance(target, ForwardName) else target.__name__}'
                for field, target in self.missing.items())
            raise RegistrationError(f'Unresolved foreign keys: {pending}')
        for model in self.models.values():
            model.build_table(self.metadata)
        self.completed = True
        log.info('Registry completed with %s models', style(str(len(self.models)), fg='green'))
        return self.metadata

    def __getitem__(self, slug: str) -> Model:
        return self.models[slug]

    def __contains__(self, slug: str) -> bool:
        return slug in self.models
