import logging
from typing import Any, Dict, List

from utils.errors import FetchError

logger = logging.getLogger(__name__)


async def list_all(store, collection_id: str, filters: str = None, page_size: int = 100) -> List[Dict[str, Any]]:
    """
    Fetch every document of a collection, page by page, starting at offset 0.
    Stops on the first page shorter than page_size.
    Any failed or malformed page raises FetchError; partial results are never returned.
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    documents: List[Dict[str, Any]] = []
    offset = 0
    while True:
        result = await store.list_documents(collection_id, limit=page_size, offset=offset, filters=filters)
        if not result.get("success"):
            raise FetchError(
                f"Listing {collection_id} failed at offset {offset}: {result.get('message') or 'unknown error'}",
                status_code=result.get("status_code"),
            )
        data = result.get("data")
        page = data.get("documents") if isinstance(data, dict) else None
        if not isinstance(page, list):
            raise FetchError(f"Listing {collection_id} at offset {offset} returned no documents list")

        documents.extend(page)
        logger.debug("Fetched %d documents from %s (offset=%d)", len(page), collection_id, offset)
        if len(page) < page_size:
            break
        offset += page_size

    return documents
