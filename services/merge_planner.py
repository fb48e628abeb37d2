# services/merge_planner.py
"""
Decide, per chat document, what the migration has to do with it.
Planning is read-only: the existence check for the canonical id, plus a one-message
check when the canonical already exists, are the only store calls.
"""
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel

from config import MigrationConfig
from services.document_store import chat_filter, is_not_found
from utils.chat_identity import canonical_chat_id, chat_members, chat_type, document_id, sorted_pair
from utils.errors import EntityError, ValidationError

logger = logging.getLogger(__name__)


class MergeAction(str, Enum):
    SKIP = "skip"
    CREATE_CANONICAL_AND_REASSIGN = "create_canonical_and_reassign"
    REASSIGN_ONLY = "reassign_only"


class SkipReason(str, Enum):
    ALREADY_CANONICAL = "already_canonical"
    NOT_A_PAIR = "not_a_pair"
    NOT_DIRECT = "not_direct"
    INVALID_MEMBERS = "invalid_members"
    ALREADY_MIGRATED = "already_migrated"
    DUPLICATE_RACE = "duplicate_race"


class MergePlan(BaseModel):
    chat_id: str
    action: MergeAction
    canonical_id: Optional[str] = None
    members: List[str] = []
    skip_reason: Optional[SkipReason] = None
    detail: str = ""

    @property
    def is_skip(self) -> bool:
        return self.action == MergeAction.SKIP


def _skip(chat_id: str, reason: SkipReason, detail: str = "", **kwargs) -> MergePlan:
    return MergePlan(chat_id=chat_id, action=MergeAction.SKIP, skip_reason=reason, detail=detail, **kwargs)


async def _has_messages(store, config: MigrationConfig, chat_id: str, canonical_id: str) -> bool:
    """True while any message still points at chat_id (one-document page)."""
    result = await store.list_documents(config.messages_collection_id, limit=1, offset=0, filters=chat_filter(chat_id))
    data = result.get("data")
    page = data.get("documents") if isinstance(data, dict) else None
    if not result.get("success") or not isinstance(page, list):
        raise EntityError(
            f"Could not check messages of {chat_id}: {result.get('message') or 'malformed response'}",
            chat_id=chat_id,
            canonical_id=canonical_id,
        )
    return bool(page)


async def plan_chat(
    store,
    config: MigrationConfig,
    chat: Dict[str, Any],
    known_canonical_ids: Optional[Set[str]] = None,
) -> MergePlan:
    """
    Plan one chat:
    - not exactly two members / group chat / invalid members -> SKIP with a reason
    - own id already canonical -> SKIP (already_canonical)
    - canonical doc missing -> CREATE_CANONICAL_AND_REASSIGN
    - canonical doc present (or being created earlier in this run) and the chat still
      has messages -> REASSIGN_ONLY, no messages left -> SKIP (already_migrated)
    Raises EntityError if a read fails (existence check errors other than 404, message check errors).
    """
    chat_id = document_id(chat)
    members = chat_members(chat)

    if members is None or len(members) != 2:
        count = 0 if members is None else len(members)
        return _skip(chat_id, SkipReason.NOT_A_PAIR, f"{count} members")

    if chat_type(chat) == "group":
        return _skip(chat_id, SkipReason.NOT_DIRECT, "type=group", members=members)

    try:
        pair = list(sorted_pair(members[0], members[1]))
        canonical_id = canonical_chat_id(members[0], members[1])
    except ValidationError as e:
        return _skip(chat_id, SkipReason.INVALID_MEMBERS, str(e), members=members)

    if chat_id == canonical_id:
        return _skip(chat_id, SkipReason.ALREADY_CANONICAL, canonical_id=canonical_id, members=pair)

    detail = ""
    if known_canonical_ids is not None and canonical_id in known_canonical_ids:
        detail = "canonical created earlier in this run"
    else:
        existing = await store.get_document(config.chats_collection_id, canonical_id)
        if is_not_found(existing):
            return MergePlan(chat_id=chat_id, action=MergeAction.CREATE_CANONICAL_AND_REASSIGN,
                             canonical_id=canonical_id, members=pair)
        if not existing.get("success"):
            raise EntityError(
                f"Could not check canonical chat {canonical_id}: {existing.get('message') or 'unknown error'}",
                chat_id=chat_id,
                canonical_id=canonical_id,
            )

    if not await _has_messages(store, config, chat_id, canonical_id):
        return _skip(chat_id, SkipReason.ALREADY_MIGRATED, f"no messages left, canonical {canonical_id}",
                     canonical_id=canonical_id, members=pair)

    return MergePlan(chat_id=chat_id, action=MergeAction.REASSIGN_ONLY, canonical_id=canonical_id,
                     members=pair, detail=detail)
