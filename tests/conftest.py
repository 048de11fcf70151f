"""Shared fixtures: an in-memory document store with scripted replication progress."""

import asyncio
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import pytest

from replication_orchestrator.core.exceptions import DocumentNotFoundError, StoreError
from replication_orchestrator.utils.store_client import StoreClient, DatabaseInfo
from replication_orchestrator.utils.urls import database_name_from_url

SOURCE = "http://alice:pw@source.example.com"
TARGET = "http://bob:pw@target.example.com"


class FakeStore(StoreClient):
    """
    In-memory StoreClient.

    Replication progress is scripted per database name: each poll of a
    replication request document consumes the next item of
    ``replication_script[name]`` (the last item repeats). Items are dicts
    merged into the stored document, or exceptions to raise. Target document
    counts are scripted the same way through ``target_script[name]`` and
    default to the source count.
    """

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.existing_databases = set()
        self.created: List[tuple] = []
        self.create_error: Optional[StoreError] = None
        self.all_dbs: List[str] = []
        self.list_error: Optional[StoreError] = None

        self.source_counts: Dict[str, int] = {}
        self.source_info_errors: Dict[str, StoreError] = {}
        self.target_script: Dict[str, List[Any]] = {}
        self.replication_script: Dict[str, List[Any]] = {}
        self.insert_errors: Dict[str, StoreError] = {}

        self.replication_docs: Dict[str, Dict[str, Any]] = {}
        self.security_docs: Dict[str, Dict[str, Any]] = {}
        self.security_write_error: Optional[StoreError] = None
        self.writes: List[tuple] = []

        self.doc_polls: Dict[str, int] = {}
        self.in_flight = 0
        self.peak_in_flight = 0

    async def _pause(self):
        if self.delay:
            await asyncio.sleep(self.delay)

    async def create_database(self, server_url: str, name: str) -> bool:
        await self._pause()
        if self.create_error:
            raise self.create_error
        key = (urlsplit(server_url).hostname, name)
        self.created.append(key)
        if key in self.existing_databases:
            return False
        self.existing_databases.add(key)
        return True

    async def get_database_info(self, db_url: str) -> DatabaseInfo:
        await self._pause()
        name = database_name_from_url(db_url)
        if urlsplit(db_url).hostname.startswith("target"):
            item = self._next(self.target_script, name, self.source_counts.get(name, 10))
            if isinstance(item, Exception):
                raise item
            return item if isinstance(item, DatabaseInfo) else DatabaseInfo(doc_count=item)
        if name in self.source_info_errors:
            raise self.source_info_errors[name]
        return DatabaseInfo(doc_count=self.source_counts.get(name, 10))

    async def list_databases(self, server_url: str) -> List[str]:
        if self.list_error:
            raise self.list_error
        return list(self.all_dbs)

    async def insert_document(self, db_url: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        await self._pause()
        name = database_name_from_url(doc["source"])
        if name in self.insert_errors:
            raise self.insert_errors[name]
        self.replication_docs[doc["_id"]] = dict(doc)
        return {"ok": True, "id": doc["_id"], "rev": "1-abc"}

    async def get_document(self, db_url: str, doc_id: str) -> Dict[str, Any]:
        await self._pause()
        if doc_id == "_security":
            return dict(self.security_docs.get(database_name_from_url(db_url), {}))

        doc = self.replication_docs.get(doc_id)
        if doc is None:
            raise DocumentNotFoundError("get_document", doc_id)
        name = database_name_from_url(doc["source"])
        self.doc_polls[name] = self.doc_polls.get(name, 0) + 1

        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            item = self._next(self.replication_script, name, {"_replication_state": "completed"})
        finally:
            self.in_flight -= 1
        if isinstance(item, Exception):
            raise item
        return {**doc, **item}

    async def update_document(self, db_url: str, doc_id: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        await self._pause()
        if self.security_write_error:
            raise self.security_write_error
        self.writes.append((db_url, doc_id, doc))
        return {"ok": True}

    def _next(self, script: Dict[str, List[Any]], name: str, default):
        items = script.get(name)
        if not items:
            return default
        if len(items) > 1:
            return items.pop(0)
        return items[0]


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def source_url():
    return SOURCE


@pytest.fixture
def target_url():
    return TARGET
