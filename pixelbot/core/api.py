from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

import requests

from pixelbot.config import CLIENT_CONFIG
from pixelbot.core.network import NetworkError
from shared.protocol import framing, validator
from shared.protocol.constants import IDENTITY_ENDPOINT, PIXEL_ENDPOINT
from shared.protocol.errors import ErrorCode, ProtocolError, StatusCode
from shared.protocol.messages import IdentityRequest, PlacementResponse, PlacementResult, PlacePixelRequest
from shared.protocol.palette import Color

logger = logging.getLogger(__name__)


class IdentityError(NetworkError):
    """The service refused the fingerprint at startup; never retried."""

    pass


class CommandError(ProtocolError):
    """Placement refused for good: forbidden action or server-reported errors."""

    pass


def build_headers(config: Dict[str, Any]) -> Dict[str, str]:
    """Browser-like headers the service expects on every request."""
    base_url = config["base_url"].rstrip("/")
    return {
        "Origin": base_url,
        "Referer": base_url,
        "User-Agent": config["user_agent"],
        "Content-Type": "application/json",
    }


def _status(code: int) -> StatusCode:
    try:
        return StatusCode(code)
    except ValueError:
        return StatusCode.INTERNAL_ERROR


class CommandClient:
    """Request/response channel: identity check and pixel placement."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, http: Optional[requests.Session] = None) -> None:
        self.config = config or CLIENT_CONFIG
        self.base_url: str = self.config["base_url"].rstrip("/")
        self.fingerprint: str = self.config["fingerprint"]
        self.token: str = self.config.get("token") or "null"
        self.timeout = float(self.config["request_timeout"])
        self.default_wait = float(self.config["default_wait_seconds"])
        self.http = http or requests.Session()
        self.http.headers.update(build_headers(self.config))

    def url_for(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _post_json(self, endpoint: str, body: Dict[str, Any]) -> requests.Response:
        return self.http.post(self.url_for(endpoint), data=framing.encode_json(body), timeout=self.timeout)

    def verify_identity(self) -> None:
        """Raise IdentityError unless the service answers 200 for our fingerprint."""
        body = IdentityRequest(fingerprint=self.fingerprint).model_dump()
        try:
            validator.validate_body(body, IDENTITY_ENDPOINT)
        except ProtocolError as exc:
            raise IdentityError(StatusCode.UNAUTHORIZED, ErrorCode.IDENTITY_REJECTED, "Fingerprint is not set") from exc
        try:
            response = self._post_json(IDENTITY_ENDPOINT, body)
        except requests.RequestException as exc:
            raise IdentityError(
                StatusCode.SERVICE_UNAVAILABLE, ErrorCode.IDENTITY_REJECTED, f"Cannot connect to API: {exc}"
            ) from exc
        if response.status_code != StatusCode.SUCCESS:
            raise IdentityError(
                _status(response.status_code),
                ErrorCode.IDENTITY_REJECTED,
                f"Cannot connect to API (HTTP {response.status_code})",
            )
        logger.info("Identity accepted by %s", self.base_url)

    def place_pixel(self, x: int, y: int, color: Union[int, Color]) -> PlacementResult:
        """
        Place one pixel at canvas coordinate (x, y).

        Returns an accepted result with the cooldown, or a rejected result with
        the time to wait before retrying. Raises CommandError when the server
        forbids the action or reports errors.
        """
        request = PlacePixelRequest.build(x, y, color, self.fingerprint, self.token)
        try:
            response = self._post_json(PIXEL_ENDPOINT, request.model_dump())
        except requests.RequestException as exc:
            logger.warning("Placement at (%s, %s) failed: %s", x, y, exc)
            return PlacementResult.rejected_with(self.default_wait)

        if response.status_code == StatusCode.SUCCESS:
            return self._parse_placement(response.content)
        if response.status_code == StatusCode.FORBIDDEN:
            raise CommandError(StatusCode.FORBIDDEN, ErrorCode.ACTION_FORBIDDEN, "Action was forbidden by the server")
        logger.warning(
            "Placement at (%s, %s) got HTTP %s, retrying in %.0fs", x, y, response.status_code, self.default_wait
        )
        return PlacementResult.rejected_with(self.default_wait)

    def _parse_placement(self, content: bytes) -> PlacementResult:
        try:
            body = framing.decode_json(content)
            validator.validate_body(body, PIXEL_ENDPOINT)
            parsed = PlacementResponse.from_dict(body)
        except ProtocolError as exc:
            logger.warning("Unreadable placement response: %s", exc.message)
            return PlacementResult.rejected_with(self.default_wait)

        if parsed.success:
            return PlacementResult.accepted_with(parsed.cooldown_seconds or 0.0)
        if parsed.errors:
            errors = "".join(f'\n"{error}"' for error in parsed.errors)
            raise CommandError(StatusCode.BAD_REQUEST, ErrorCode.SERVER_REJECTED, f"Server responded with errors:{errors}")
        wait = parsed.wait_seconds if parsed.wait_seconds is not None else self.default_wait
        return PlacementResult.rejected_with(wait)

    def close(self) -> None:
        self.http.close()
