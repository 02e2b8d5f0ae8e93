import logging
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence

from sqlalchemy import func, inspect, select
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.sql import Select

from opensearch_repositories.adapters.abstract_classes import ABCAdapter
from opensearch_repositories.adapters.abstract_classes.abc_adapter import QueryFn
from opensearch_repositories.errors import ConfigurationError

logger = logging.getLogger(__name__)


class SQLAlchemyAdapter(ABCAdapter):
    """
    Adapter for SQLAlchemy ORM mapped classes.

    Batches are read with keyset pagination on the primary key, so every
    batch is one bounded ``SELECT``. Query callables receive and return a
    ``sqlalchemy.Select``.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        """
        Args:
            session_factory: Callable returning a new ``Session`` usable as a
                context manager, typically a ``sessionmaker``.
        """
        self._session_factory = session_factory

    def matches(self, entity_type: Any) -> bool:
        return isinstance(entity_type, type) and inspect(entity_type, raiseerr=False) is not None

    def _primary_key(self, entity_type: Any):
        mapper = inspect(entity_type)
        if len(mapper.primary_key) != 1:
            raise ConfigurationError(
                f"{entity_type.__name__} must have a single-column primary key to be imported"
            )
        prop = mapper.get_property_by_column(mapper.primary_key[0])
        return getattr(entity_type, prop.key), prop.key

    def _statement(
        self,
        entity_type: Any,
        scope: Optional[QueryFn] = None,
        query: Optional[QueryFn] = None,
        process_query: Optional[QueryFn] = None,
    ) -> Select:
        stmt = select(entity_type)
        narrowed = stmt
        for fn in (scope, query):
            if fn is not None:
                narrowed = fn(narrowed)

        if narrowed is not stmt:
            # joins in a scope repeat parent rows; select each record once by key
            pk_attr, _ = self._primary_key(entity_type)
            keys = narrowed.with_only_columns(pk_attr).order_by(None)
            stmt = stmt.where(pk_attr.in_(keys))

        if process_query is not None:
            stmt = process_query(stmt)
        return stmt

    def find_in_batches(
        self,
        entity_type: Any,
        batch_size: int,
        scope: Optional[QueryFn] = None,
        query: Optional[QueryFn] = None,
        process_query: Optional[QueryFn] = None,
    ) -> Iterator[List[Any]]:
        pk_attr, pk_key = self._primary_key(entity_type)
        stmt = self._statement(entity_type, scope, query, process_query).order_by(None).order_by(pk_attr)

        with self._session_factory() as session:
            last_id = None
            while True:
                page = stmt if last_id is None else stmt.where(pk_attr > last_id)
                batch = list(session.scalars(page.limit(batch_size)).unique())
                if not batch:
                    return

                yield batch

                if len(batch) < batch_size:
                    return
                last_id = getattr(batch[-1], pk_key)
                # keep the identity map bounded across batches
                session.expunge_all()

    def count(
        self,
        entity_type: Any,
        scope: Optional[QueryFn] = None,
        query: Optional[QueryFn] = None,
    ) -> int:
        stmt = self._statement(entity_type, scope, query).order_by(None)
        with self._session_factory() as session:
            return session.scalar(select(func.count()).select_from(stmt.subquery())) or 0

    def _coerce_ids(self, pk_attr, ids: Sequence[str]) -> List[Any]:
        try:
            python_type = pk_attr.property.columns[0].type.python_type
        except NotImplementedError:
            return list(ids)

        coerced = []
        for value in ids:
            try:
                coerced.append(python_type(value))
            except (TypeError, ValueError):
                # an id that cannot exist in this table
                logger.debug(f"Skipping id {value!r} not convertible to {python_type.__name__}")
        return coerced

    def fetch_by_ids(
        self,
        entity_type: Any,
        ids: Sequence[str],
        includes: Optional[Iterable[Any]] = None,
        order_by: Optional[Iterable[Any]] = None,
    ) -> List[Any]:
        pk_attr, _ = self._primary_key(entity_type)
        values = self._coerce_ids(pk_attr, ids)
        if not values:
            return []

        stmt = select(entity_type).where(pk_attr.in_(values))
        for include in includes or ():
            if isinstance(include, str):
                include = selectinload(getattr(entity_type, include))
            stmt = stmt.options(include)
        for clause in order_by or ():
            stmt = stmt.order_by(getattr(entity_type, clause) if isinstance(clause, str) else clause)

        with self._session_factory() as session:
            return list(session.scalars(stmt).unique())

    def record_id(self, record: Any) -> str:
        mapper = inspect(record).mapper
        prop = mapper.get_property_by_column(mapper.primary_key[0])
        return str(getattr(record, prop.key))
