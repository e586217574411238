from __future__ import annotations

import json
from typing import Any

from fastapi import HTTPException, Request
from starlette.datastructures import UploadFile

from .config import Settings
from .db import VocabStore


def get_store(request: Request) -> VocabStore:
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def read_json_payload(request: Request, file_field: str = "file") -> Any:
    """Decode a JSON document sent either as a multipart upload or as the raw body.

    Returns ``None`` when the request carries nothing.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get(file_field)
        if not isinstance(upload, UploadFile):
            return None
        raw = await upload.read()
        await upload.close()
    else:
        raw = await request.body()

    if not raw or not raw.strip():
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=400, detail="invalid_json") from exc
