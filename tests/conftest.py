from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
from sqlalchemy import ForeignKey, String, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from opensearch_repositories.adapters import ABCAdapter, adapter_registry
from opensearch_repositories.global_config import reset_global_config
from opensearch_repositories.opensearch.open_search_client import OpenSearchClient, set_default_client
from opensearch_repositories.strategy.base_strategy import BaseStrategy


@dataclass
class Note:
    id: int
    title: str
    type: str = "Note"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "type": self.type}


@dataclass
class Task:
    id: int
    title: str
    type: str = "Task"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "type": self.type}


class InMemoryAdapter(ABCAdapter):
    """Adapter over a plain list; query callables receive and return lists.

    ``fetch_by_ids`` returns records in storage order, not in the order of
    the requested ids.
    """

    def __init__(self, records: List[Any]):
        self.records = list(records)
        self.fetch_calls: List[tuple] = []

    def _narrow(self, *fns: Optional[Callable]) -> List[Any]:
        records = list(self.records)
        for fn in fns:
            if fn is not None:
                records = fn(records)
        return records

    def find_in_batches(self, entity_type, batch_size, scope=None, query=None, process_query=None):
        records = self._narrow(scope, query, process_query)
        for start in range(0, len(records), batch_size):
            yield records[start:start + batch_size]

    def count(self, entity_type, scope=None, query=None) -> int:
        return len(self._narrow(scope, query))

    def fetch_by_ids(self, entity_type, ids, includes=None, order_by=None):
        self.fetch_calls.append((entity_type, list(ids), includes, order_by))
        wanted = set(ids)
        return [r for r in self.records if isinstance(r, entity_type) and str(r.id) in wanted]

    def record_id(self, record) -> str:
        return str(record.id)


def make_hit(doc_id: Any, source: Optional[Dict[str, Any]] = None, index: str = "notes") -> Dict[str, Any]:
    return {"_index": index, "_id": str(doc_id), "_score": 1.0, "_source": source or {"id": doc_id}}


def make_search_response(hits: List[Dict[str, Any]], total: Any = None, **extra) -> Dict[str, Any]:
    response = {
        "took": 3,
        "timed_out": False,
        "_shards": {"total": 1, "successful": 1, "skipped": 0, "failed": 0},
        "hits": {
            "total": total if total is not None else {"value": len(hits), "relation": "eq"},
            "max_score": 1.0,
            "hits": hits,
        },
    }
    response.update(extra)
    return response


def bulk_responder(failures_per_batch: int = 0, took: int = 5) -> Callable[..., Dict[str, Any]]:
    """Fake ``client.bulk`` rejecting the first ``failures_per_batch`` documents."""

    def bulk(body, index=None, **params):
        items = []
        for position, action in enumerate(body[::2]):
            op_type, meta = next(iter(action.items()))
            outcome = {"_index": index, "_id": meta.get("_id"), "status": 201}
            if position < failures_per_batch:
                outcome = {
                    "_index": index,
                    "_id": meta.get("_id"),
                    "status": 400,
                    "error": {"type": "mapper_parsing_exception", "reason": "failed to parse"},
                }
            items.append({op_type: outcome})
        return {"took": took, "errors": failures_per_batch > 0, "items": items}

    return bulk


@pytest.fixture(autouse=True)
def _isolated_globals():
    yield
    adapter_registry.clear()
    reset_global_config()
    set_default_client(None)
    OpenSearchClient.reset()


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock(name="opensearch")
    client.indices.exists.return_value = True
    client.indices.get_settings.return_value = {
        "notes": {"settings": {"index": {"refresh_interval": "5s"}}}
    }
    client.bulk.side_effect = bulk_responder()
    return client


@pytest.fixture
def notes() -> List[Note]:
    return [Note(id=i, title=f"note {i}") for i in range(1, 6)]


@pytest.fixture
def note_adapter(notes) -> InMemoryAdapter:
    return InMemoryAdapter(notes)


@pytest.fixture
def note_strategy(client, note_adapter) -> BaseStrategy:
    return BaseStrategy(Note, client=client, adapter=note_adapter)


class Base(DeclarativeBase):
    pass


class Article(Base):
    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    published: Mapped[bool] = mapped_column(default=True)
    comments: Mapped[List["Comment"]] = relationship(back_populates="article")


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(primary_key=True)
    body: Mapped[str] = mapped_column(String(500))
    article_id: Mapped[int] = mapped_column(ForeignKey("articles.id"))
    article: Mapped[Article] = relationship(back_populates="comments")


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(engine, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def articles(session_factory) -> List[Article]:
    with session_factory() as session:
        rows = [Article(id=i, title=f"article {i}", published=i % 2 == 1) for i in range(1, 8)]
        session.add_all(rows)
        session.add(Comment(id=1, body="first!", article_id=1))
        session.commit()
    return rows
