"""
SQLAlchemy-backed record store.

Exposes the ORM tables to the trip core as plain dict records. Every call
opens its own session from the factory, so the store can be shared by
request handlers and background notification tasks alike. Committed updates
are published to the change feed.
"""

import enum
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import Enum as SAEnum, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from driver_backend.app.core.clock import as_utc
from driver_backend.app.db.session import Base
from driver_backend.app.domain.ports import ChangeEvent, ChangeFeed, Record, RecordNotFoundError, StoreError
from driver_backend.app.models.driver_location import DriverLocation
from driver_backend.app.models.driver_shift import DriverShift, VehicleCheckoff
from driver_backend.app.models.notification import Notification, PushToken
from driver_backend.app.models.trip import Trip
from driver_backend.app.models.user import User

logger = logging.getLogger(__name__)

TABLE_MODELS: Dict[str, Type[Base]] = {
    "profiles": User,
    "trips": Trip,
    "driver_location": DriverLocation,
    "notifications": Notification,
    "push_tokens": PushToken,
    "driver_shifts": DriverShift,
    "vehicle_checkoffs": VehicleCheckoff,
}

# Never handed out as part of a record.
HIDDEN_COLUMNS = {"hashed_password"}


def to_record(instance: Base) -> Record:
    """Column values of an ORM instance, with enums as values and datetimes in UTC."""
    record: Record = {}
    for column in instance.__table__.columns:
        if column.key in HIDDEN_COLUMNS:
            continue
        value = getattr(instance, column.key)
        if isinstance(value, enum.Enum):
            value = value.value
        elif isinstance(value, datetime):
            value = as_utc(value)
        elif isinstance(value, Decimal):
            value = float(value)
        record[column.key] = value
    return record


def _coerce(model: Type[Base], key: str, value: Any) -> Any:
    columns = model.__table__.columns
    if key not in columns:
        raise StoreError(f"Unknown column {model.__tablename__}.{key}")
    column_type = columns[key].type
    if value is not None and isinstance(column_type, SAEnum) and column_type.enum_class is not None:
        return column_type.enum_class(value)
    return value


class SqlAlchemyRecordStore:

    def __init__(self, session_factory: async_sessionmaker, feed: Optional[ChangeFeed] = None):
        self._session_factory = session_factory
        self._feed = feed

    @staticmethod
    def _model(table: str) -> Type[Base]:
        try:
            return TABLE_MODELS[table]
        except KeyError:
            raise StoreError(f"Unknown table {table}") from None

    async def get(self, table: str, record_id: Any) -> Optional[Record]:
        model = self._model(table)
        try:
            async with self._session_factory() as session:
                instance = await session.get(model, record_id)
                return to_record(instance) if instance is not None else None
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read {table} {record_id}: {exc}") from exc

    async def update(self, table: str, record_id: Any, fields: Record) -> Record:
        model = self._model(table)
        values = {key: _coerce(model, key, value) for key, value in fields.items()}
        try:
            async with self._session_factory() as session:
                instance = await session.get(model, record_id)
                if instance is None:
                    raise RecordNotFoundError(f"{table} {record_id} not found")
                old_record = to_record(instance)
                for key, value in values.items():
                    setattr(instance, key, value)
                await session.commit()
                await session.refresh(instance)
                new_record = to_record(instance)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to update {table} {record_id}: {exc}") from exc

        await self._publish("UPDATE", table, record_id, new_record, old_record)
        return new_record

    async def insert(self, table: str, fields: Record) -> Record:
        model = self._model(table)
        values = {key: _coerce(model, key, value) for key, value in fields.items()}
        try:
            async with self._session_factory() as session:
                instance = model(**values)
                session.add(instance)
                await session.commit()
                await session.refresh(instance)
                record = to_record(instance)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to insert into {table}: {exc}") from exc

        await self._publish("INSERT", table, record["id"], record, {})
        return record

    async def select(
        self,
        table: str,
        filters: Optional[Record] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Record]:
        model = self._model(table)
        columns = model.__table__.columns
        query = select(model)
        for key, value in (filters or {}).items():
            if key not in columns:
                raise StoreError(f"Unknown column {table}.{key}")
            column = getattr(model, key)
            if value is None:
                query = query.where(column.is_(None))
            elif isinstance(value, (list, tuple, set)):
                query = query.where(column.in_([_coerce(model, key, item) for item in value]))
            else:
                query = query.where(column == _coerce(model, key, value))
        if order_by is not None:
            if order_by not in columns:
                raise StoreError(f"Unknown column {table}.{order_by}")
            column = getattr(model, order_by)
            if descending:
                query = query.order_by(column.desc(), model.id.desc())
            else:
                query = query.order_by(column.asc(), model.id.asc())
        if limit is not None:
            query = query.limit(limit)

        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return [to_record(instance) for instance in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to query {table}: {exc}") from exc

    async def _publish(self, event_type: str, table: str, record_id: Any, new_record: Record, old_record: Record) -> None:
        if self._feed is None:
            return
        event = ChangeEvent(
            event_type=event_type,
            table=table,
            record_id=record_id,
            new_record=new_record,
            old_record=old_record,
        )
        try:
            await self._feed.publish(event)
        except Exception:
            # The write is committed; subscribers catch up on their next read.
            logger.exception("Failed to publish %s on %s %s", event_type, table, record_id)
