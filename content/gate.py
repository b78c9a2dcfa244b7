# src/content/gate.py
import logging
import stat
from pathlib import Path
from typing import Tuple

import aiofiles.os
from fastapi import Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from audit.services import AuditAction, AuditLog
from auth.schemas import SessionUser
from auth.services import SessionResolver
from content.registry import ResourceEntry, ResourceRegistry, resource_registry
from content.services import stream_file
from errors import AuthenticationFailure, AuthorizationFailure, NotFound
from subscription.models import Subscription
from subscription.services import SubscriptionLedger

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class AccessGate:
    """Checks run in a fixed order: session, subscription, registry, file.

    The first failing check decides the response, so an anonymous caller gets
    401 even for an id that does not exist.
    """

    def __init__(self, registry: ResourceRegistry = resource_registry):
        self.registry = registry

    def require_session(self, request: Request) -> SessionUser:
        user = SessionResolver.current_session(request)
        if user is None:
            logger.warning(f"Access gate stage=session rejected {request.url.path}")
            raise AuthenticationFailure()
        return user

    def require_active_subscription(self, user: SessionUser, db: Session) -> Subscription:
        subscription = SubscriptionLedger.find_active(db, user.id)
        if subscription is None:
            logger.warning(f"Access gate stage=subscription rejected user {user.id}")
            raise AuthorizationFailure()
        return subscription

    def require_whitelisted_resource(self, user: SessionUser, resource_id: str) -> Tuple[ResourceEntry, Path]:
        entry = self.registry.get(resource_id)
        path = self.registry.resolve(resource_id)
        if entry is None or path is None:
            logger.warning(f"Access gate stage=registry rejected user {user.id}: unknown resource {resource_id!r}")
            raise NotFound()
        return entry, path

    async def deliver(
            self,
            request: Request,
            user: SessionUser,
            entry: ResourceEntry,
            path: Path,
            db: Session
    ) -> StreamingResponse:
        try:
            file_stat = await aiofiles.os.stat(path)
        except FileNotFoundError:
            file_stat = None
        if file_stat is None or not stat.S_ISREG(file_stat.st_mode):
            logger.error(f"Access gate stage=deliver: resource {entry.id} is missing at {path}")
            raise NotFound()

        source_ip = request.client.host if request.client else None
        await run_in_threadpool(AuditLog.log, db, user.id, AuditAction.RESOURCE_ACCESSED, {
            "resource_id": entry.id,
            "size": file_stat.st_size,
        }, source_ip)
        logger.info(f"Delivering {entry.id} ({file_stat.st_size} bytes) to user {user.id}")

        headers = dict(NO_CACHE_HEADERS)
        headers["Content-Disposition"] = f'attachment; filename="{entry.file_name}"'
        headers["Content-Length"] = str(file_stat.st_size)
        return StreamingResponse(stream_file(path), media_type=entry.media_type, headers=headers)

    async def open(self, request: Request, resource_id: str, db: Session) -> StreamingResponse:
        user = self.require_session(request)
        await run_in_threadpool(self.require_active_subscription, user, db)
        entry, path = self.require_whitelisted_resource(user, resource_id)
        return await self.deliver(request, user, entry, path, db)


access_gate = AccessGate()
