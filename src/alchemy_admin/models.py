from typing import Any, Dict, List, Mapping, Optional, Tuple

from markupsafe import Markup
from pluralizer import Pluralizer
from sqlalchemy import MetaData, Table

from .exceptions import RegistrationError, ValidationError
from .fields import GRID_WIDTH, Field, FileHandlerField

pluralizer = Pluralizer()
pluralize = pluralizer.plural


class Model:
    """Metadata of one registered dataclass: fields, table and slug."""

    def __init__(self, name: str, slug: str, table_name: str, model_type: type, instance: Any = None):
        self.name = name
        self.plural_name = pluralize(name)
        self.slug = slug
        self.table_name = table_name
        self.model_type = model_type
        self.instance = instance
        self._fields: List[Field] = []
        self._frozen = False
        self.table: Optional[Table] = None

    def add_field(self, field: Field) -> None:
        if self._frozen:
            raise RegistrationError(f'Model "{self.name}" is already registered')
        self._fields.append(field)

    def freeze(self) -> None:
        if not self._fields:
            raise RegistrationError(f'Model "{self.name}" has no fields')
        self._fields = tuple(self._fields)
        self._frozen = True

    @property
    def fields(self) -> Tuple[Field, ...]:
        return tuple(self._fields)

    @property
    def pk(self) -> Field:
        """The identifier field, always the first one."""
        return self._fields[0]

    @property
    def field_names(self) -> List[str]:
        return [field.name for field in self._fields]

    @property
    def table_columns(self) -> List[str]:
        return [field.column_name for field in self._fields]

    @property
    def list_fields(self) -> List[Field]:
        return [field for field in self._fields if field.list]

    @property
    def list_columns(self) -> List[str]:
        """Labels of the columns shown by the list view."""
        return [field.label for field in self.list_fields]

    @property
    def list_table_columns(self) -> List[str]:
        return [field.column_name for field in self.list_fields]

    @property
    def searchable_columns(self) -> List[str]:
        return [field.column_name for field in self._fields if field.searchable]

    @property
    def editable_fields(self) -> List[Field]:
        return list(self._fields[1:])

    def field_by_name(self, name: str) -> Optional[Field]:
        for field in self._fields:
            if field.name == name:
                return field
        return None

    def build_table(self, metadata: MetaData) -> Table:
        """Derive the SQLAlchemy table storing the model rows."""
        self.pk.primary_key = True
        self.table = Table(self.table_name, metadata, *(field.column() for field in self._fields))
        return self.table

    def render_form(self, values: Optional[Mapping[str, Any]] = None, use_defaults: bool = False,
                    errors: Optional[Mapping[str, str]] = None, templates=None, **context) -> Markup:
        """Render every field, wrapping rows each time the widths fill the grid."""
        errors = errors or {}
        parts = []
        active_col = 0
        for field in self._fields:
            if values is not None:
                value = values.get(field.name)
            elif use_defaults:
                value = field.default_value
            else:
                value = None
            parts.append(field.render(value, errors.get(field.name), active_col % GRID_WIDTH == 0,
                                      templates=templates, **context))
            active_col += field.width
        return Markup('').join(parts)

    def validate_submission(self, form: Mapping[str, str],
                            files: Optional[Mapping[str, Any]] = None) -> Tuple[Dict[str, Any], Dict[str, str]]:
        """Validate the submitted values of every editable field.

        Returns the typed data and the per-field error messages; empty values
        are left out of the data so they keep their stored (or default) value.
        """
        files = files or {}
        data, errors = {}, {}
        for field in self.editable_fields:
            raw = field.raw_value(form)
            try:
                if not raw and isinstance(field, FileHandlerField) and files.get(field.name):
                    raw = field.handle_file(files[field.name])
                if not raw:
                    continue
                data[field.name] = field.validate(raw)
            except ValidationError as exc:
                errors[field.name] = exc.message
        return data, errors

    def __repr__(self):
        return f'<Model {self.name}>'


class ModelGroup:
    """Named collection of models, used by the index page."""

    def __init__(self, registry, name: str, slug: str):
        self.registry = registry
        self.name = name
        self.slug = slug
        self.models: List[Model] = []

    def register(self, model) -> Model:
        """Register a dataclass (type or instance) in this group."""
        return self.registry.register_model(self, model)

    def __repr__(self):
        return f'<ModelGroup {self.name}>'
