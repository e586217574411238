from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import Header, HTTPException, Request

logger = logging.getLogger("vocab_trainer.security")


def api_key_matches(provided: Optional[str], expected: str) -> bool:
    if not expected or not provided:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def require_api_key(request: Request, x_api_key: Optional[str] = Header(default=None)) -> None:
    """Reject the request unless X-API-Key equals the configured ADMIN_API_KEY."""
    expected = request.app.state.settings.admin_api_key
    if not api_key_matches(x_api_key, expected):
        logger.warning(
            "Admin request rejected",
            extra={"event": "admin_unauthorized", "path": request.url.path},
        )
        raise HTTPException(status_code=401, detail="unauthorized")
