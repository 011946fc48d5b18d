"""Service container and request dependencies.

Every collaborator is constructed once in ``create_app`` and hung on
``app.state.services``; routes reach them through these dependencies so
tests can swap any of them.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

from fastapi import Header, Request

from mindstack.auth import Authenticator
from mindstack.config import MindstackConfig
from mindstack.db.repository import Repository
from mindstack.ingest.pipeline import IngestionPipeline
from mindstack.ingest.tasks import TaskRunner
from mindstack.rag.llm_client import LLMClient
from mindstack.sessions import SessionService
from mindstack.storage.objects import ObjectStore


@dataclass
class Services:
    config: MindstackConfig
    conn: sqlite3.Connection
    authenticator: Authenticator
    llm: LLMClient
    objects: ObjectStore
    pipeline: IngestionPipeline
    sessions: SessionService
    tasks: TaskRunner


def get_services(request: Request) -> Services:
    return request.app.state.services


async def get_repo(
    request: Request, authorization: str | None = Header(default=None)
) -> Repository:
    """Caller-scoped repository; raises AuthorizationError without a valid token.

    Async so the token lookup runs on the event loop thread with every
    other use of the shared connection.
    """
    return get_services(request).authenticator.authenticate(authorization)
