"""Shared pytest fixtures for idvt tests."""
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import idvt.models  # noqa: F401 - register tables
from idvt.db.session import Base
from idvt.services.document_store import DocumentStore


class InMemoryDocumentStore(DocumentStore):
    """Document store backed by a dict of namespace -> id -> document."""

    def __init__(self, documents: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None):
        self.documents = {ns: dict(docs) for ns, docs in (documents or {}).items()}
        self.reads: List[str] = []

    async def get(self, namespace, document_id):
        self.reads.append(f"{namespace}/{document_id}")
        return self.documents.get(namespace, {}).get(document_id)

    async def list(self, namespace):
        return list(self.documents.get(namespace, {}).values())

    async def put(self, namespace, document_id, document):
        self.documents.setdefault(namespace, {})[document_id] = document

    async def delete(self, namespace, document_id):
        self.documents.get(namespace, {}).pop(document_id, None)


@pytest.fixture
def make_store():
    """Factory for an in-memory document store seeded with documents."""
    return InMemoryDocumentStore


@pytest.fixture
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
