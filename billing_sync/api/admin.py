"""Operator endpoints.

Implements:
- POST /admin/sync-subscriptions?key=... - backfill records from recent checkout sessions
"""

import secrets
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from billing_sync.dependencies import Services, get_services
from billing_sync.errors import GatewayError
from billing_sync.logging_config import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["Admin"], prefix="/admin")


def _key_matches(provided: Optional[str], expected: Optional[str]) -> bool:
    if not provided or not expected:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


@router.post("/sync-subscriptions", summary="Backfill missing subscription records")
def sync_subscriptions(key: Optional[str] = None, services: Services = Depends(get_services)) -> Response:
    """Run the backfill sweep.

    Returns 403 unless ``key`` matches ADMIN_SYNC_KEY (an unset key rejects
    every request).
    """
    if not _key_matches(key, services.admin_sync_key):
        logger.warning("admin_sync_forbidden")
        return PlainTextResponse("Forbidden", status_code=403)

    try:
        result = services.admin_sync.run()
    except GatewayError as e:
        logger.error("admin_sync_failed", error=str(e), exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Admin sync failed"})

    return JSONResponse(status_code=200, content=result.model_dump(mode="json"))
