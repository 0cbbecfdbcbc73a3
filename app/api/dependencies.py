"""
Shared API dependencies.

Reusable FastAPI dependencies that build the per-request service graph.
"""

import asyncio
from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlmodel import Session

from app.core.config import settings
from app.core.context import RequestContext
from app.core.security import PasswordHasher, password_hasher
from app.db.repositories.user import UserRepository
from app.db.session import get_db
from app.services.user_service import UserService

# Seconds between client-disconnect polls
DISCONNECT_POLL_INTERVAL = 0.1


async def watch_disconnect(request: Request, context: RequestContext,
                           interval: float = DISCONNECT_POLL_INTERVAL) -> None:
    """Cancel the context as soon as the client goes away."""
    while not await request.is_disconnected():
        await asyncio.sleep(interval)
    context.cancel()


async def get_request_context(request: Request) -> AsyncGenerator[RequestContext, None]:
    """
    Fresh deadline for each request, cancelled when the client disconnects.

    Yields:
        RequestContext shared by every store call of the request
    """
    context = RequestContext(timeout=settings.REQUEST_TIMEOUT_SECONDS)
    watcher = asyncio.create_task(watch_disconnect(request, context))
    try:
        yield context
    finally:
        watcher.cancel()


def get_password_hasher() -> PasswordHasher:
    return password_hasher


def get_user_service(db: Session = Depends(get_db), context: RequestContext = Depends(get_request_context),
                     hasher: PasswordHasher = Depends(get_password_hasher), ) -> UserService:
    """Build a UserService bound to the request's session and deadline."""
    return UserService(UserRepository(db, context), hasher)
