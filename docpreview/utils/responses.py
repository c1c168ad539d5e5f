from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel

NO_STORE_HEADERS = {"Cache-Control": "no-store"}


def no_store_headers(extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    return {**NO_STORE_HEADERS, **(extra or {})}


def json_response(payload: Any, status_code: int = 200) -> JSONResponse:
    """Serialize a payload (camelCase for models) with caching disabled."""
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
    return JSONResponse(content=payload, status_code=status_code, headers=no_store_headers())


def error_response(message: str, code: str, status_code: int) -> JSONResponse:
    return json_response({"error": message, "code": code}, status_code=status_code)
