import logging
from typing import List

from pydantic import BaseModel

from config import MigrationConfig
from services.document_store import chat_filter
from services.paginated_lister import list_all
from utils.chat_identity import document_id
from utils.errors import FetchError

logger = logging.getLogger(__name__)


class ReassignResult(BaseModel):
    count: int = 0
    errors: List[str] = []


async def reassign_messages(store, config: MigrationConfig, source_chat_id: str, canonical_chat_id: str) -> ReassignResult:
    """
    Point every message of source_chat_id at canonical_chat_id.
    Only the chatId attribute is written. One failed update does not stop the rest;
    rerunning is safe because moved messages no longer match the source filter.
    """
    result = ReassignResult()
    if source_chat_id == canonical_chat_id:
        return result

    # Collect the full list before writing so offsets stay stable while messages move
    try:
        messages = await list_all(
            store,
            config.messages_collection_id,
            filters=chat_filter(source_chat_id),
            page_size=config.page_size,
        )
    except FetchError as e:
        result.errors.append(f"Listing messages of {source_chat_id} failed: {e}")
        return result

    logger.info("Found %d messages to reassign from %s -> %s", len(messages), source_chat_id, canonical_chat_id)

    for message in messages:
        message_id = document_id(message)
        if not message_id:
            result.errors.append(f"Message without id in chat {source_chat_id}")
            continue
        response = await store.update_document(
            config.messages_collection_id, message_id, {"chatId": canonical_chat_id}
        )
        if response.get("success"):
            result.count += 1
        else:
            error = f"Message {message_id}: {response.get('message') or 'update failed'}"
            logger.warning("Reassign failed for %s", error)
            result.errors.append(error)

    return result
