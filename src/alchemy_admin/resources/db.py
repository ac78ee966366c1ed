import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from click import style
from sqlalchemy.exc import SQLAlchemyError

from ..context import db
from ..exceptions import NotFoundError, StorageError
from ..models import Model
from .statements import compile_statement, delete_statement, insert_statement, list_statement, select_by_id, \
    update_statement

log = logging.getLogger('Admin.storage')


class ModelResource:
    """Reads and writes the rows of one model inside the current request context."""

    def __init__(self, model: Model):
        self.model = model

    async def _execute(self, stmt):
        if log.isEnabledFor(logging.DEBUG):
            sql, args = compile_statement(stmt)
            log.debug('%s %s', style(sql, fg='yellow'), args)
        try:
            return await db.execute(stmt)
        except SQLAlchemyError as exc:
            log.error('Statement on %s failed', style(self.model.name, fg='red'), exc_info=True)
            raise StorageError(f'{self.model.name} could not be stored') from exc

    async def get(self, q: Optional[str] = None) -> List[Tuple[Any, ...]]:
        """Rows of the list columns, filtered by `q`."""
        result = await self._execute(list_statement(self.model, q))
        return [tuple(row) for row in result.all()]

    async def by_pk(self, pk: int) -> Dict[str, Any]:
        """The row `pk` as a field name -> value mapping."""
        result = await self._execute(select_by_id(self.model, pk))
        row = result.first()
        if row is None:
            raise NotFoundError(f'{self.model.name} {pk} not found')
        return dict(zip(self.model.field_names, row))

    async def post(self, data: Mapping[str, Any]) -> int:
        """Insert a new row, returns its identifier."""
        result = await self._execute(insert_statement(self.model, data))
        return result.inserted_primary_key[0]

    async def put(self, pk: int, data: Mapping[str, Any]) -> int:
        """Update the row `pk` with the submitted values."""
        stmt = update_statement(self.model, pk, data)
        if stmt is None:
            await self.by_pk(pk)
            return pk
        result = await self._execute(stmt)
        if not result.rowcount:
            raise NotFoundError(f'{self.model.name} {pk} not found')
        return pk

    async def delete(self, pk: int) -> None:
        result = await self._execute(delete_statement(self.model, pk))
        if not result.rowcount:
            raise NotFoundError(f'{self.model.name} {pk} not found')

    def __repr__(self):
        return f'<{self.model.name}Resource>'
