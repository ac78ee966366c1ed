"""SQL statements for one model.

Statements are SQLAlchemy Core constructs built on the table derived from
the model fields; `compile_statement` gives their positional `(sql, args)`
form, with the arguments in the same order as the `?` placeholders.
"""
from typing import Any, List, Mapping, NamedTuple, Optional, Tuple

from sqlalchemy import Delete, Insert, Select, Update, or_, select
from sqlalchemy.dialects import sqlite

from ..exceptions import RegistrationError
from ..models import Model

DIALECT = sqlite.dialect(paramstyle='qmark')


class Statement(NamedTuple):
    sql: str
    args: Tuple[Any, ...]


def compile_statement(stmt) -> Statement:
    """Render `stmt` with positional placeholders and its ordered arguments."""
    # no extra keys: inserts and updates only carry the values given to them
    compiled = stmt.compile(dialect=DIALECT, column_keys=[])
    params = compiled.params
    return Statement(str(compiled), tuple(params[name] for name in compiled.positiontup or ()))


def _table(model: Model):
    if model.table is None:
        raise RegistrationError(f'Model "{model.name}" has no table: registration is not completed')
    return model.table


def _changed_columns(model: Model, data: Mapping[str, Any]) -> List[Tuple[str, Any]]:
    """Column/value pairs of the submitted fields, in field declaration order."""
    return [(field.column_name, data[field.name])
            for field in model.editable_fields if field.name in data]


def list_statement(model: Model, q: Optional[str] = None) -> Select:
    """Rows of the list view, filtered by `q` on the searchable columns."""
    table = _table(model)
    query = select(*(table.c[name] for name in model.list_table_columns))
    if q and model.searchable_columns:
        pattern = f'%{q}%'
        query = query.where(or_(*(table.c[name].like(pattern) for name in model.searchable_columns)))
    return query.order_by(table.c[model.pk.column_name])


def select_by_id(model: Model, pk: int) -> Select:
    table = _table(model)
    return select(*(table.c[name] for name in model.table_columns)).where(table.c[model.pk.column_name] == pk)


def insert_statement(model: Model, data: Mapping[str, Any]) -> Insert:
    """Insert the submitted values; missing columns take their storage default."""
    stmt = _table(model).insert()
    changed = _changed_columns(model, data)
    return stmt.values(dict(changed)) if changed else stmt


def update_statement(model: Model, pk: int, data: Mapping[str, Any]) -> Optional[Update]:
    """Update the submitted values of row `pk`, `None` when nothing changed."""
    table = _table(model)
    changed = _changed_columns(model, data)
    if not changed:
        return None
    return table.update().where(table.c[model.pk.column_name] == pk).values(dict(changed))


def delete_statement(model: Model, pk: int) -> Delete:
    table = _table(model)
    return table.delete().where(table.c[model.pk.column_name] == pk)
