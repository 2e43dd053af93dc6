"""
Wingmann Engine - Service wiring

One Engine per application: a blob store plus the services built on it.
The app factory stores it on app.state; routers reach it via get_engine.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from ..storage.blob_store import BlobStore
from .exports import ExportPublisher
from .record_store import RecordStore
from .submission_service import SubmissionService


@dataclass
class Engine:
    blobs: BlobStore
    store: RecordStore
    publisher: ExportPublisher
    submissions: SubmissionService

    async def startup(self) -> None:
        """Make sure the canonical list exists and the exports match it."""
        await self.store.initialize()
        await self.publisher.publish()


def build_engine(blobs: BlobStore) -> Engine:
    store = RecordStore(blobs)
    publisher = ExportPublisher(store, blobs)
    return Engine(
        blobs=blobs,
        store=store,
        publisher=publisher,
        submissions=SubmissionService(store, publisher),
    )


def get_engine(request: Request) -> Engine:
    """FastAPI dependency returning the application's Engine."""
    return request.app.state.engine
