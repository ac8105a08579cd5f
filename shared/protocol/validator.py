from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema

from .constants import IDENTITY_ENDPOINT, PIXEL_ENDPOINT
from .errors import ErrorCode, ProtocolError, StatusCode

SCHEMA_DIR = Path(__file__).parent / "schemas"

# Mapping endpoint -> response schema filename (relative to SCHEMA_DIR)
SCHEMA_REGISTRY: Dict[str, str] = {
    PIXEL_ENDPOINT: "pixel.response.json",
    IDENTITY_ENDPOINT: "me.request.json",
}


def _schema_path(endpoint: str) -> Optional[Path]:
    filename = SCHEMA_REGISTRY.get(endpoint.strip("/"))
    if not filename:
        return None
    path = SCHEMA_DIR / filename
    return path if path.exists() else None


@lru_cache(maxsize=16)
def load_schema(endpoint: str) -> Optional[dict]:
    """Load JSON schema for endpoint if present."""
    path = _schema_path(endpoint)
    if not path:
        return None
    with path.open("r", encoding="utf-8") as fp:
        return json.load(fp)


def validate_body(body: Dict[str, Any], endpoint: str, schema: Optional[dict] = None) -> None:
    """Validate a JSON body exchanged with `endpoint` against its schema."""
    if not schema:
        schema = load_schema(endpoint)
    if schema:
        try:
            jsonschema.validate(instance=body, schema=schema)
        except jsonschema.ValidationError as exc:
            raise ProtocolError(
                StatusCode.BAD_REQUEST,
                ErrorCode.MALFORMED_RESPONSE,
                f"Schema validation failed for {endpoint}: {exc.message}",
            ) from exc


__all__ = ["SCHEMA_REGISTRY", "load_schema", "validate_body"]
