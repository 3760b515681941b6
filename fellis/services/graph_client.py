"""
Facebook Graph API client

Thin async wrapper over the Graph endpoints the import needs. Every listing
is a single bounded page; pagination cursors are not followed. Access is
read-only: the requested scopes carry no write or delete permissions.
"""

import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from fellis.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

FRIENDS_PAGE_SIZE = 500
POSTS_PAGE_SIZE = 100
PHOTOS_PAGE_SIZE = 100


class GraphClient:
    """Async client for the Facebook Graph API."""

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        redirect_uri: str,
        graph_url: str = "https://graph.facebook.com/v21.0",
        dialog_url: str = "https://www.facebook.com/v21.0/dialog/oauth",
        scopes: str = "public_profile,email,user_friends,user_posts,user_photos",
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.app_id = app_id
        self.app_secret = app_secret
        self.redirect_uri = redirect_uri
        self.graph_url = graph_url.rstrip("/")
        self.dialog_url = dialog_url
        self.scopes = scopes
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True)

    @property
    def configured(self) -> bool:
        return bool(self.app_id and self.app_secret)

    async def aclose(self) -> None:
        await self._client.aclose()

    def authorization_url(self, state: str) -> str:
        query = urlencode(
            {
                "client_id": self.app_id,
                "redirect_uri": self.redirect_uri,
                "scope": self.scopes,
                "state": state,
                "response_type": "code",
            }
        )
        return f"{self.dialog_url}?{query}"

    async def _get_json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.get(f"{self.graph_url}{path}", params=params)
        except httpx.RequestError as e:
            raise ExternalServiceError(f"Graph request to {path} failed: {e}") from e
        if response.status_code != 200:
            raise ExternalServiceError(
                f"Graph request to {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise ExternalServiceError(f"Graph response from {path} is not JSON") from e
        if not isinstance(payload, dict):
            raise ExternalServiceError(f"Graph response from {path} is not an object")
        return payload

    async def _get_collection(self, path: str, token: str, fields: str, limit: int, **extra: Any) -> list[dict]:
        payload = await self._get_json(path, {"fields": fields, "limit": limit, "access_token": token, **extra})
        data = payload.get("data")
        if not isinstance(data, list):
            raise ExternalServiceError(f"Graph response from {path} has no data array")
        return [item for item in data if isinstance(item, dict)]

    async def exchange_code(self, code: str) -> dict[str, Any]:
        """
        Exchange an OAuth code for an access token.

        Returns {"access_token": str, "expires_in": int | None}.
        """
        payload = await self._get_json(
            "/oauth/access_token",
            {
                "client_id": self.app_id,
                "client_secret": self.app_secret,
                "redirect_uri": self.redirect_uri,
                "code": code,
            },
        )
        token = payload.get("access_token")
        if not token:
            raise ExternalServiceError("Graph token exchange returned no access_token")
        expires_in = payload.get("expires_in")
        return {"access_token": token, "expires_in": int(expires_in) if expires_in else None}

    async def fetch_profile(self, token: str) -> dict[str, Any]:
        profile = await self._get_json(
            "/me", {"fields": "id,name,email,picture.width(200).height(200)", "access_token": token}
        )
        if not profile.get("id"):
            raise ExternalServiceError("Graph profile has no id")
        return profile

    async def fetch_friends(self, token: str, limit: int = FRIENDS_PAGE_SIZE) -> list[dict]:
        return await self._get_collection("/me/friends", token, "id,name", limit)

    async def fetch_posts(self, token: str, limit: int = POSTS_PAGE_SIZE) -> list[dict]:
        return await self._get_collection("/me/posts", token, "message,created_time,full_picture", limit)

    async def fetch_photos(self, token: str, limit: int = PHOTOS_PAGE_SIZE) -> list[dict]:
        return await self._get_collection("/me/photos", token, "images,name,created_time", limit, type="uploaded")

    async def fetch_image(self, url: str) -> tuple[bytes, str]:
        """Download an image. Returns (bytes, content_type)."""
        try:
            response = await self._client.get(url)
        except httpx.RequestError as e:
            raise ExternalServiceError(f"Image download failed: {e}", service="media") from e
        if response.status_code != 200:
            raise ExternalServiceError(
                f"Image download returned HTTP {response.status_code}",
                service="media",
                status_code=response.status_code,
            )
        return response.content, response.headers.get("content-type", "image/jpeg")
