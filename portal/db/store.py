"""
db/store.py
-----------
EntityStore: the only way services talk to the database.

A thin handle over one AsyncSession exposing

    find(kind, id)            -> row | None
    find_by(kind, *criteria)  -> list[row]
    create(kind, **attrs)     -> row
    update(kind, id, attrs)   -> row
    delete(kind, id)          -> None

plus a few query helpers. ``kind`` is the ORM model class.

Every call is bounded by DB_OPERATION_TIMEOUT_SECONDS and driver failures
are translated into the domain taxonomy:

    IntegrityError (unique / FK / not-null) → ConflictError
    any other SQLAlchemyError, or a timeout → StoreError (retryable)

Inserts run inside a SAVEPOINT, so a constraint violation only discards that
one row and leaves the surrounding transaction usable. This is what lets a
bulk assignment carry on after a duplicate grant.
"""

import asyncio
from typing import Any, Awaitable, Iterable, Optional, Sequence, Type, TypeVar

from sqlalchemy import ColumnElement, Select, delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.config import settings
from portal.core.errors import ConflictError, NotFoundError, StoreError
from portal.core.logging import get_logger
from portal.db.base import Base

logger = get_logger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=Base)


def _entity_name(kind: Type[Base]) -> str:
    return getattr(kind, "__entity_name__", kind.__name__.lower())


class EntityStore:

    def __init__(self, session: AsyncSession, timeout: Optional[float] = None) -> None:
        self.session = session
        self._timeout = timeout if timeout is not None else settings.DB_OPERATION_TIMEOUT_SECONDS

    async def _run(self, awaitable: Awaitable[T], operation: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except IntegrityError as exc:
            logger.info("Constraint violation", operation=operation, error=str(exc.orig))
            raise ConflictError(
                f"{operation} violates a uniqueness or reference constraint"
            ) from exc
        except asyncio.TimeoutError as exc:
            logger.error("Store call timed out", operation=operation, timeout=self._timeout)
            raise StoreError(f"{operation} timed out after {self._timeout}s") from exc
        except SQLAlchemyError as exc:
            logger.error("Store call failed", operation=operation, error=str(exc))
            raise StoreError(f"{operation} failed: {exc.__class__.__name__}") from exc

    # ── Reads ────────────────────────────────────────────────────────────────

    async def find(self, kind: Type[M], entity_id: Any) -> Optional[M]:
        return await self._run(
            self.session.get(kind, entity_id, populate_existing=True),
            f"find {_entity_name(kind)}",
        )

    async def get(self, kind: Type[M], entity_id: Any) -> M:
        """find() that raises NotFoundError instead of returning None."""
        entity = await self.find(kind, entity_id)
        if entity is None:
            raise NotFoundError(_entity_name(kind), _format_id(entity_id))
        return entity

    async def find_by(
        self,
        kind: Type[M],
        *criteria: ColumnElement[bool],
        order_by: Iterable[Any] = (),
    ) -> list[M]:
        stmt = select(kind).where(*criteria).order_by(*order_by)
        return await self.select_all(stmt, f"find {_entity_name(kind)}")

    async def select_all(self, stmt: Select, operation: str = "select") -> list[Any]:
        async def _scalars() -> list[Any]:
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        return await self._run(_scalars(), operation)

    async def select_rows(self, stmt: Select, operation: str = "select") -> list[Any]:
        async def _rows() -> list[Any]:
            result = await self.session.execute(stmt)
            return list(result.all())

        return await self._run(_rows(), operation)

    async def count(self, kind: Type[Base], *criteria: ColumnElement[bool]) -> int:
        async def _count() -> int:
            result = await self.session.execute(
                select(func.count()).select_from(kind).where(*criteria)
            )
            return int(result.scalar_one())

        return await self._run(_count(), f"count {_entity_name(kind)}")

    # ── Writes ───────────────────────────────────────────────────────────────

    async def create(self, kind: Type[M], **attrs: Any) -> M:
        entity = kind(**attrs)

        async def _insert() -> M:
            async with self.session.begin_nested():
                self.session.add(entity)
                await self.session.flush()
            await self.session.refresh(entity)
            return entity

        return await self._run(_insert(), f"create {_entity_name(kind)}")

    async def update(self, kind: Type[M], entity_id: Any, attrs: dict[str, Any]) -> M:
        entity = await self.get(kind, entity_id)

        async def _apply() -> M:
            async with self.session.begin_nested():
                for key, value in attrs.items():
                    setattr(entity, key, value)
                await self.session.flush()
            await self.session.refresh(entity)
            return entity

        return await self._run(_apply(), f"update {_entity_name(kind)}")

    async def delete(self, kind: Type[M], entity_id: Any) -> None:
        entity = await self.get(kind, entity_id)

        async def _remove() -> None:
            async with self.session.begin_nested():
                await self.session.delete(entity)
                await self.session.flush()

        await self._run(_remove(), f"delete {_entity_name(kind)}")

    async def delete_where(self, kind: Type[Base], *criteria: ColumnElement[bool]) -> int:
        async def _bulk_delete() -> int:
            result = await self.session.execute(
                delete(kind).where(*criteria).execution_options(synchronize_session=False)
            )
            return int(result.rowcount or 0)

        return await self._run(_bulk_delete(), f"delete {_entity_name(kind)} rows")

    async def commit(self) -> None:
        await self._run(self.session.commit(), "commit")

    async def rollback(self) -> None:
        await self.session.rollback()


def _format_id(entity_id: Any) -> str:
    if isinstance(entity_id, Sequence) and not isinstance(entity_id, str):
        return "/".join(str(part) for part in entity_id)
    return str(entity_id)
