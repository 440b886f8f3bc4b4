"""HTTP client for the PrayOverUs REST API.

Learn: This is what the mobile controllers talk to. It reduces every
failure to one of two exceptions, because the submission controller
handles them very differently:

- NetworkError: no response at all (DNS, refused, timeout, dropped).
  Retryable; the idempotency key must be kept.
- ApiError: the server answered with a non-2xx status. Carries the
  server's message verbatim so the UI can show it as-is. A 2xx whose
  body isn't JSON is also an ApiError.
"""

from typing import Any, Optional

import httpx
import structlog

from prayoverus.config import client_settings

logger = structlog.get_logger()

IDEMPOTENCY_HEADER = "X-Idempotency-Key"
INVALID_RESPONSE = "Invalid response from server"


class NetworkError(Exception):
    """The request never got a response."""


class ApiError(Exception):
    """The server responded with an error status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


def _error_message(response: httpx.Response) -> str:
    """Pull the human-readable message out of an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP error! status: {response.status_code}"

    if isinstance(body, dict):
        detail = body.get("detail", body.get("message"))
        if isinstance(detail, str):
            return detail
        # pydantic 422s: a list of {loc, msg, ...}
        if isinstance(detail, list) and detail:
            return "; ".join(str(d.get("msg", d)) for d in detail)
    return f"HTTP error! status: {response.status_code}"


class PrayerApiClient:
    """Async client for /api. Use as an async context manager."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"User-Agent": "PrayOverUs-Python-Client"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.AsyncClient(
            base_url=(base_url or client_settings.api_url).rstrip("/"),
            headers=headers,
            timeout=timeout or client_settings.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "PrayerApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._http.request(method, f"/api{path}", **kwargs)
        except httpx.RequestError as e:
            logger.warning("api.network_error", method=method, path=path, error=repr(e))
            raise NetworkError(str(e) or e.__class__.__name__) from e

        if response.is_error:
            message = _error_message(response)
            logger.info(
                "api.error_response",
                method=method,
                path=path,
                status=response.status_code,
                message=message,
            )
            raise ApiError(response.status_code, message)

        try:
            return response.json()
        except ValueError as e:
            logger.warning(
                "api.invalid_body", method=method, path=path, status=response.status_code
            )
            raise ApiError(response.status_code, INVALID_RESPONSE) from e

    # ─── Prayers ─────────────────────────────────────────

    async def create_prayer(
        self,
        title: str,
        content: str,
        is_public: bool = False,
        idempotency_key: Optional[str] = None,
    ) -> dict:
        """POST /prayers. The key goes in the header and, for servers that
        only look at the body, in idempotencyKey as well."""
        payload: dict[str, Any] = {
            "title": title,
            "content": content,
            "isPublic": is_public,
        }
        headers = {}
        if idempotency_key:
            payload["idempotencyKey"] = idempotency_key
            headers[IDEMPOTENCY_HEADER] = idempotency_key
        return await self._request("POST", "/prayers", json=payload, headers=headers)

    async def get_prayer(self, prayer_id: str) -> dict:
        return await self._request("GET", f"/prayers/{prayer_id}")

    async def get_user_prayers(self) -> list[dict]:
        return await self._request("GET", "/prayers/mine")

    async def get_public_prayers(self, limit: int = 100, offset: int = 0) -> list[dict]:
        return await self._request(
            "GET", "/prayers/public", params={"limit": limit, "offset": offset}
        )

    async def update_prayer_status(self, prayer_id: str, status: str) -> dict:
        return await self._request(
            "PATCH", f"/prayers/{prayer_id}/status", json={"status": status}
        )

    async def delete_prayer(self, prayer_id: str) -> dict:
        return await self._request("DELETE", f"/prayers/{prayer_id}")

    # ─── Support ─────────────────────────────────────────

    async def add_prayer_support(self, prayer_id: str, support_type: str = "prayer") -> dict:
        return await self._request(
            "POST", f"/prayers/{prayer_id}/support", json={"type": support_type}
        )

    async def remove_prayer_support(self, prayer_id: str, support_type: str) -> dict:
        return await self._request("DELETE", f"/prayers/{prayer_id}/support/{support_type}")

    # ─── Comments ────────────────────────────────────────

    async def get_prayer_comments(self, prayer_id: str) -> list[dict]:
        return await self._request("GET", f"/prayers/{prayer_id}/comments")

    async def add_prayer_comment(self, prayer_id: str, content: str) -> dict:
        return await self._request(
            "POST", f"/prayers/{prayer_id}/comments", json={"content": content}
        )

    # ─── Groups ──────────────────────────────────────────

    async def get_user_groups(self) -> list[dict]:
        return await self._request("GET", "/groups/mine")

    async def get_public_groups(self) -> list[dict]:
        return await self._request("GET", "/groups/public")

    async def create_prayer_group(
        self,
        name: str,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
        is_public: bool = True,
    ) -> dict:
        return await self._request(
            "POST",
            "/groups",
            json={
                "name": name,
                "description": description,
                "imageUrl": image_url,
                "isPublic": is_public,
            },
        )

    async def join_group(self, group_id: str) -> dict:
        return await self._request("POST", f"/groups/{group_id}/join")

    async def leave_group(self, group_id: str) -> dict:
        return await self._request("DELETE", f"/groups/{group_id}/leave")

    # ─── Auth ────────────────────────────────────────────

    async def get_current_user(self) -> dict:
        return await self._request("GET", "/auth/user")

    async def health(self) -> dict:
        return await self._request("GET", "/health")
