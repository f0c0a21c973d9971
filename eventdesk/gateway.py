"""Owner-scoped access to the three record collections.

Everything the pages read or write passes through :class:`DataGateway`. Rows
are always filtered by the owning user's id, so another user's records look
exactly like missing ones. Storage failures come back as :class:`GatewayError`
carrying the backend's message text.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from eventdesk.database import db
from eventdesk.models import Attendee, Event, Task

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """A backend call failed; ``message`` is shown to the user as-is."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthRequiredError(GatewayError):
    def __init__(self, message: str = 'No user found'):
        super().__init__(message)


@dataclass(frozen=True)
class Collection:
    model: Any
    noun: str
    writable: Tuple[str, ...]
    immutable: Tuple[str, ...] = ()
    joins: Tuple[str, ...] = ()
    # foreign key column -> referenced collection name
    references: Dict[str, str] = field(default_factory=dict)

    @property
    def readable(self) -> Tuple[str, ...]:
        return ('id',) + self.writable


COLLECTIONS: Dict[str, Collection] = {
    'events': Collection(
        model=Event,
        noun='Event',
        writable=('name', 'description', 'location', 'date'),
    ),
    'attendees': Collection(
        model=Attendee,
        noun='Attendee',
        writable=('name', 'email', 'task'),
    ),
    'tasks': Collection(
        model=Task,
        noun='Task',
        writable=('name', 'deadline', 'status', 'event_id', 'attendee_id'),
        immutable=('event_id',),
        joins=('event', 'attendee'),
        references={'event_id': 'events', 'attendee_id': 'attendees'},
    ),
}


class DataGateway:
    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def select(
        self,
        collection: str,
        user_id: Optional[str],
        filters: Optional[Mapping[str, Any]] = None,
        order: Optional[Tuple[str, bool]] = None,
        columns: Optional[Sequence[str]] = None,
        joins: Iterable[str] = (),
    ) -> List[Dict[str, Any]]:
        """Return the owner's rows as dicts.

        ``order`` is ``(column, ascending)``. Each name in ``joins`` adds a
        ``{"name": ...}`` projection of the referenced row (or ``None``).
        """
        meta = self._collection(collection)
        self._require_user(user_id)
        joins = tuple(joins)
        for join in joins:
            if join not in meta.joins:
                raise GatewayError(f"Could not find a relationship between '{collection}' and '{join}'")

        model = meta.model
        query = db.select(model).filter_by(user_id=user_id).execution_options(populate_existing=True)
        for column, value in (filters or {}).items():
            query = query.where(self._column(collection, meta, column) == value)
        if order:
            column, ascending = order
            sort = self._column(collection, meta, column)
            query = query.order_by(sort.asc() if ascending else sort.desc(), model.created_at)
        for join in joins:
            query = query.options(selectinload(getattr(model, join)))

        try:
            rows = self.session.execute(query).scalars().all()
        except SQLAlchemyError as exc:
            self._fail(exc)

        wanted = tuple(columns) if columns else None
        if wanted:
            for column in wanted:
                self._column(collection, meta, column)
        records = []
        for row in rows:
            record = row.to_dict()
            if wanted:
                record = {key: record[key] for key in wanted}
            for join in joins:
                target = getattr(row, join)
                record[join] = {'name': target.name} if target is not None else None
            records.append(record)
        return records

    def insert(self, collection: str, user_id: Optional[str], record: Mapping[str, Any]) -> Dict[str, Any]:
        meta = self._collection(collection)
        self._require_user(user_id)
        values = self._writable_values(collection, meta, record)
        self._check_references(meta, user_id, values)

        row = meta.model(user_id=user_id, **values)
        try:
            self.session.add(row)
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(exc)
        logger.debug('inserted %s %s for user %s', collection, row.id, user_id)
        return row.to_dict()

    def update(self, collection: str, user_id: Optional[str], record_id: str,
               patch: Mapping[str, Any]) -> Dict[str, Any]:
        meta = self._collection(collection)
        self._require_user(user_id)
        values = self._writable_values(collection, meta, patch)
        for column in meta.immutable:
            if column in values:
                raise GatewayError(f'column {collection}.{column} cannot be changed')
        self._check_references(meta, user_id, values)

        row = self._get_owned(meta, user_id, record_id)
        for column, value in values.items():
            setattr(row, column, value)
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(exc)
        logger.debug('updated %s %s for user %s', collection, record_id, user_id)
        return row.to_dict()

    def delete(self, collection: str, user_id: Optional[str], record_id: str) -> None:
        meta = self._collection(collection)
        self._require_user(user_id)
        row = self._get_owned(meta, user_id, record_id)
        try:
            self.session.delete(row)
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(exc)
        logger.debug('deleted %s %s for user %s', collection, record_id, user_id)

    # --- helpers ---

    @staticmethod
    def _collection(name: str) -> Collection:
        try:
            return COLLECTIONS[name]
        except KeyError:
            raise GatewayError(f"relation '{name}' does not exist") from None

    @staticmethod
    def _require_user(user_id: Optional[str]) -> None:
        if not user_id:
            raise AuthRequiredError()

    @staticmethod
    def _column(collection: str, meta: Collection, column: str):
        if column not in meta.readable:
            raise GatewayError(f'column {collection}.{column} does not exist')
        return getattr(meta.model, column)

    @staticmethod
    def _writable_values(collection: str, meta: Collection, record: Mapping[str, Any]) -> Dict[str, Any]:
        values = {}
        for column, value in record.items():
            if column not in meta.writable:
                if column in ('id', 'user_id'):
                    raise GatewayError(f'column {collection}.{column} cannot be written')
                raise GatewayError(f'column {collection}.{column} does not exist')
            values[column] = value
        return values

    def _check_references(self, meta: Collection, user_id: str, values: Mapping[str, Any]) -> None:
        for column, target_name in meta.references.items():
            value = values.get(column)
            if value is None:
                continue
            target = COLLECTIONS[target_name]
            try:
                found = self.session.execute(
                    db.select(target.model.id).filter_by(id=value, user_id=user_id)
                ).first()
            except SQLAlchemyError as exc:
                self._fail(exc)
            if found is None:
                raise GatewayError(f'{target.noun} not found')

    def _get_owned(self, meta: Collection, user_id: str, record_id: str):
        try:
            row = self.session.execute(
                db.select(meta.model).filter_by(id=record_id, user_id=user_id)
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            self._fail(exc)
        if row is None:
            raise GatewayError(f'{meta.noun} not found')
        return row

    def _fail(self, exc: SQLAlchemyError):
        self.session.rollback()
        message = str(getattr(exc, 'orig', None) or exc)
        logger.warning('backend call failed: %s', message)
        raise GatewayError(message) from exc
