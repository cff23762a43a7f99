import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from ..core.config import ClientSettings
from ..models.cotacao import Cotacao

log = logging.getLogger(__name__)


class RemoteError(Exception):
    """Any failed remote call: transport error, non-success status or bad body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteClient:
    def __init__(
        self,
        api_url: str,
        health_url: str,
        authorization: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.health_url = health_url
        headers = {"Accept": "application/json", "Cache-Control": "no-cache"}
        if authorization:
            headers["Authorization"] = authorization
        self._client = httpx.AsyncClient(timeout=timeout, headers=headers, transport=transport)

    @classmethod
    def from_settings(
        cls, settings: ClientSettings, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "RemoteClient":
        return cls(
            settings.api_url,
            settings.resolved_health_url(),
            authorization=settings.authorization,
            timeout=settings.request_timeout,
            transport=transport,
        )

    async def aclose(self):
        await self._client.aclose()

    def _item_url(self, record_id: str) -> str:
        return f"{self.api_url}/{quote(str(record_id), safe='')}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteError(f"{method} {url} failed: {exc}") from exc
        if not response.is_success:
            raise RemoteError(
                f"{method} {url} returned {response.status_code}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _record(payload: Any) -> Dict[str, Any]:
        try:
            return Cotacao.model_validate(payload).model_dump()
        except ValidationError as exc:
            raise RemoteError(f"Malformed cotacao in response: {exc}") from exc

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError("Response body is not JSON") from exc

    async def list_cotacoes(self) -> List[Dict[str, Any]]:
        payload = self._json(await self._request("GET", self.api_url))
        if not isinstance(payload, list):
            raise RemoteError("Expected a JSON array of cotacoes")
        return [self._record(item) for item in payload]

    async def create_cotacao(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._request("POST", self.api_url, json=fields)
        return self._record(self._json(response))

    async def update_cotacao(self, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._request("PUT", self._item_url(record_id), json=fields)
        return self._record(self._json(response))

    async def delete_cotacao(self, record_id: str):
        await self._request("DELETE", self._item_url(record_id))

    async def health(self) -> bool:
        try:
            response = await self._client.get(self.health_url)
        except httpx.HTTPError as exc:
            log.debug("Health probe failed: %s", exc)
            return False
        return response.is_success
