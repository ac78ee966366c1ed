"""Field variants: one typed, configurable descriptor per model column.

Each field knows how to configure itself from the `admin` tag, validate a
raw submitted string into its native type, render itself as a form control
and render a stored value for the list views.
"""
import logging
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import uuid4

from markupsafe import Markup, escape
from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, Text, Time
from sqlalchemy.types import TypeEngine

from .exceptions import ConfigError, RegistrationError, ValidationError
from .tags import FieldOptions
from .templates import get_environment

log = logging.getLogger('Admin.fields')

GRID_WIDTH = 12
# range of a SQLite INTEGER
INT_MIN, INT_MAX = -2 ** 63, 2 ** 63 - 1


class Field:
    """Base field, stores and shows plain text."""

    template = 'text.html'
    input_type = 'text'

    def __init__(self):
        self._name: Optional[str] = None
        self._column_name: Optional[str] = None
        self.label: str = ''
        self.list: bool = False
        self.searchable: bool = False
        self.default_value: Optional[str] = None
        self.width: int = GRID_WIDTH
        self.primary_key: bool = False

    @property
    def name(self) -> Optional[str]:
        return self._name

    @name.setter
    def name(self, value: str):
        if self._name is not None:
            raise RegistrationError(f'Field "{self._name}" can\'t be renamed')
        self._name = value

    @property
    def column_name(self) -> Optional[str]:
        return self._column_name

    @column_name.setter
    def column_name(self, value: str):
        if self._column_name is not None:
            raise RegistrationError(f'Column "{self._column_name}" can\'t be renamed')
        self._column_name = value

    def configure(self, options: FieldOptions) -> None:
        """Apply the tag options to the field attributes."""
        self.label = options.label or self.name
        self.list = self.list or options.list
        self.searchable = options.search
        if options.default is not None:
            self.default_value = options.default
        if options.width is not None:
            self.width = options.width

    def raw_value(self, form: Mapping[str, str]) -> str:
        """The submitted string for this field, empty when nothing was sent."""
        return form.get(self.name) or ''

    def validate(self, raw: str) -> Any:
        """Parse `raw` into the field's type, raise `ValidationError` if it doesn't fit."""
        return raw

    def form_value(self, value: Any) -> str:
        """The value as shown inside the form control."""
        return '' if value is None else str(value)

    def render(self, value: Any, error: Optional[str] = None, start_row: bool = False,
               templates=None, **context) -> Markup:
        """Render the labelled form control, with `error` below it."""
        env = templates or get_environment()
        ctx = dict(context)
        ctx.update(
            field=self,
            name=self.name,
            label=self.label,
            width=self.width,
            input_type=self.input_type,
            value=self.form_value(value),
            raw_value=value,
            error=error,
            startrow=start_row,
            tmpl=f'fields/{self.template}',
        )
        return Markup(env.get_template('fields/wrapper.html').render(**ctx))

    def render_string(self, value: Any) -> Markup:
        """Display-safe text for the list views."""
        return escape(self.form_value(value))

    def column_type(self) -> TypeEngine:
        return Text()

    def column_args(self) -> List[Any]:
        return []

    def column(self) -> Column:
        """The SQLAlchemy column storing this field."""
        return Column(self.column_name, self.column_type(), *self.column_args(),
                      primary_key=self.primary_key)

    def __repr__(self):
        return f'<{type(self).__name__} {self.name}>'


class TextField(Field):
    template = 'text.html'


class IntField(Field):
    input_type = 'number'

    def validate(self, raw: str) -> int:
        try:
            value = int(raw)
        except (TypeError, ValueError) as exc:
            raise ValidationError('invalid integer') from exc
        if not INT_MIN <= value <= INT_MAX:
            raise ValidationError('invalid integer')
        return value

    def column_type(self) -> TypeEngine:
        return Integer()


class FloatField(Field):
    input_type = 'number'

    def validate(self, raw: str) -> float:
        try:
            return float(raw)
        except (TypeError, ValueError) as exc:
            raise ValidationError('invalid float') from exc

    def column_type(self) -> TypeEngine:
        return Float()


class BooleanField(Field):
    template = 'boolean.html'
    input_type = 'checkbox'

    TRUE = frozenset(('true', 'on', '1', 'yes'))
    FALSE = frozenset(('false', 'off', '0', 'no'))
    # sent by the form next to the checkbox, an unchecked box sends nothing
    PRESENT_SUFFIX = '.present'

    def raw_value(self, form: Mapping[str, str]) -> str:
        raw = form.get(self.name) or ''
        if not raw and form.get(self.name + self.PRESENT_SUFFIX):
            return 'false'
        return raw

    def validate(self, raw: str) -> bool:
        lowered = raw.strip().lower()
        if lowered in self.TRUE:
            return True
        if lowered in self.FALSE:
            return False
        raise ValidationError('invalid boolean')

    def form_value(self, value: Any) -> str:
        if isinstance(value, str):
            return 'true' if value.strip().lower() in self.TRUE else ''
        return 'true' if value else ''

    def render_string(self, value: Any) -> Markup:
        return escape('Yes' if self.form_value(value) else 'No')

    def column_type(self) -> TypeEngine:
        return Boolean()


class TimeField(Field):
    """Date and time values; `kind` is one of `datetime`, `date` or `time`."""

    FORMATS = {
        'datetime': ('%Y-%m-%d %H:%M', 'datetime-local', '%Y-%m-%dT%H:%M'),
        'date': ('%Y-%m-%d', 'date', '%Y-%m-%d'),
        'time': ('%H:%M', 'time', '%H:%M'),
    }

    def __init__(self, kind: str = 'datetime'):
        super().__init__()
        if kind not in self.FORMATS:
            raise RegistrationError(f'Unknown time kind "{kind}"')
        self.kind = kind
        self.display_format, self.input_type, self.input_format = self.FORMATS[kind]

    def configure(self, options: FieldOptions) -> None:
        super().configure(options)
        if options.extra.get('format'):
            self.display_format = options.extra['format']

    def validate(self, raw: str):
        raw = raw.strip()
        try:
            if self.kind == 'time':
                return time.fromisoformat(raw)
            parsed = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise ValidationError('invalid time') from exc
        return parsed.date() if self.kind == 'date' else parsed

    def form_value(self, value: Any) -> str:
        if isinstance(value, (datetime, date, time)):
            return value.strftime(self.input_format)
        return super().form_value(value)

    def render_string(self, value: Any) -> Markup:
        if isinstance(value, (datetime, date, time)):
            return escape(value.strftime(self.display_format))
        return super().render_string(value)

    def column_type(self) -> TypeEngine:
        return {'datetime': DateTime, 'date': Date, 'time': Time}[self.kind]()


class ForeignKeyField(Field):
    """Integer reference to the identifier of another registered model."""

    template = 'foreign_key.html'
    input_type = 'number'

    def __init__(self):
        super().__init__()
        self.model = None

    def validate(self, raw: str) -> int:
        try:
            pk = int(raw)
        except (TypeError, ValueError) as exc:
            raise ValidationError('invalid id') from exc
        if not 0 < pk <= INT_MAX:
            raise ValidationError('invalid id')
        return pk

    def render(self, value: Any, error: Optional[str] = None, start_row: bool = False,
               templates=None, **context) -> Markup:
        return super().render(value, error, start_row, templates, related=self.model, **context)

    def column_type(self) -> TypeEngine:
        return Integer()

    def column_args(self) -> List[Any]:
        if self.model is None:
            return []
        return [ForeignKey(f'{self.model.table_name}.{self.model.pk.column_name}')]


class FileHandlerField:
    """Capability of fields storing an uploaded file instead of a text value."""

    def handle_file(self, upload) -> str:
        """Store `upload` and return the reference saved as the field value."""
        raise NotImplementedError()


class FileField(TextField, FileHandlerField):
    """Stores the upload under `upload_dir` and keeps the stored file name."""

    template = 'file.html'
    input_type = 'file'

    def __init__(self, upload_dir: str = 'uploads'):
        super().__init__()
        self.upload_dir = Path(upload_dir)

    def configure(self, options: FieldOptions) -> None:
        super().configure(options)
        if options.extra.get('upload_dir'):
            self.upload_dir = Path(options.extra['upload_dir'])

    def handle_file(self, upload) -> str:
        filename = Path(upload.filename or '').name
        if not filename:
            raise ValidationError('invalid file')
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        stored = f'{uuid4().hex[:8]}-{filename}'
        (self.upload_dir / stored).write_bytes(upload.content)
        log.info('Stored upload %s as %s', filename, stored)
        return stored


class CustomFields:
    """Named field factories the `field=<name>` tag option can ask for."""

    def __init__(self):
        self._factories: Dict[str, Callable[[], Field]] = {}

    def register(self, name: str, factory: Callable[[], Field] = None):
        """Register `factory` under `name`; usable as a class decorator."""
        def wrapper(factory):
            if name in self._factories:
                raise ConfigError(f'Custom field "{name}" already registered')
            self._factories[name] = factory
            return factory
        return wrapper(factory) if factory is not None else wrapper

    def create(self, name: str) -> Field:
        if name not in self._factories:
            raise RegistrationError(f'Unknown custom field "{name}"')
        field = self._factories[name]()
        if not isinstance(field, Field):
            raise RegistrationError(f'Custom field "{name}" must build a Field, got {type(field).__name__}')
        return field

    def __contains__(self, name: str) -> bool:
        return name in self._factories

