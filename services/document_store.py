import json
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from config import MigrationConfig

logger = logging.getLogger(__name__)


class DocumentStoreClient:
    """
    Thin async client for the Appwrite documents REST API.

    Every call returns a result dict instead of raising on HTTP/network errors:
        {"success": bool, "data": <json or None>, "status_code": int|None, "message": str}
    Network retries are left to httpx; timeouts come from the config.
    """

    def __init__(self, config: MigrationConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={
                "x-appwrite-project": config.project_id,
                "x-appwrite-key": config.api_key,
                "content-type": "application/json",
            },
            timeout=config.request_timeout,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    def _documents_path(self, collection_id: str, document_id: str = None) -> str:
        path = f"/databases/{quote(self.config.database_id, safe='')}/collections/{quote(collection_id, safe='')}/documents"
        if document_id is not None:
            path += "/" + quote(str(document_id), safe="")
        return path

    async def _request(self, method: str, path: str, params: dict = None, json_data: dict = None) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, params=params, json=json_data)
        except httpx.TimeoutException as e:
            logger.warning("Store request timed out: %s %s (%s)", method, path, e)
            return {"success": False, "data": None, "status_code": None, "message": f"Request timed out: {e}"}
        except httpx.RequestError as e:
            logger.warning("Store request failed: %s %s (%s: %s)", method, path, type(e).__name__, e)
            return {"success": False, "data": None, "status_code": None, "message": f"Network error: {e}"}

        try:
            body = response.json() if response.content else None
        except json.JSONDecodeError:
            body = None

        if response.is_success:
            return {"success": True, "data": body, "status_code": response.status_code, "message": ""}

        # Appwrite errors look like {"message": "...", "code": 404, "type": "document_not_found"}
        message = ""
        if isinstance(body, dict):
            message = body.get("message") or body.get("type") or ""
        if not message:
            message = response.text[:300] or response.reason_phrase
        if response.status_code != 404:
            logger.info("Store %s %s -> HTTP %s: %s", method, path, response.status_code, message)
        return {"success": False, "data": body, "status_code": response.status_code, "message": message}

    async def list_documents(self, collection_id: str, limit: int, offset: int = 0, filters: str = None) -> Dict[str, Any]:
        """
        One page of documents. data = {"total": int, "documents": [...]}.
        filters uses the legacy "attribute==value" form, e.g. "chatId==abc".
        """
        params = {"limit": limit, "offset": offset}
        if filters:
            params["filters"] = filters
        return await self._request("GET", self._documents_path(collection_id), params=params)

    async def get_document(self, collection_id: str, document_id: str) -> Dict[str, Any]:
        """Single document; a missing document is success=False with status_code 404."""
        return await self._request("GET", self._documents_path(collection_id, document_id))

    async def create_document(self, collection_id: str, document_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create with a caller-chosen id; an existing id is success=False with status_code 409."""
        body = {"documentId": document_id, "data": data}
        return await self._request("POST", self._documents_path(collection_id), json_data=body)

    async def update_document(self, collection_id: str, document_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Partial update: only the given attributes are written."""
        return await self._request("PATCH", self._documents_path(collection_id, document_id), json_data={"data": data})


def is_not_found(result: Dict[str, Any]) -> bool:
    return not result.get("success") and result.get("status_code") == 404


def is_conflict(result: Dict[str, Any]) -> bool:
    return not result.get("success") and result.get("status_code") == 409


def chat_filter(chat_id: str) -> str:
    return f"chatId=={chat_id}"
