# utils/chat_identity.py
"""
Single source of truth for direct-message chat identity: canonical ids,
member extraction and document id/payload access. Used by the planner,
the engine and any tooling that needs to agree on which chat is "the" chat
for a pair of users.
"""
import hashlib
from typing import Any, Dict, List, Optional, Tuple

from utils.errors import ValidationError

DM_PREFIX = "dm_"
# Store document ids are capped at 36 characters
MAX_CANONICAL_ID_LENGTH = 36
HASH_PREFIX_LENGTH = 16


def sorted_pair(member_a: Any, member_b: Any) -> Tuple[str, str]:
    """
    Return the two member ids as strings in lexicographic order.
    Ids are used exactly as stored (no trimming) so keys match those already written.
    Raises ValidationError for blank ids or a self-referential pair.
    """
    a = "" if member_a is None else str(member_a)
    b = "" if member_b is None else str(member_b)
    if not a.strip() or not b.strip():
        raise ValidationError(f"Chat member ids must be non-empty (got {member_a!r}, {member_b!r})")
    if a == b:
        raise ValidationError(f"Chat members must be two different users (got {a!r} twice)")
    return (a, b) if a < b else (b, a)


def canonical_chat_id(member_a: Any, member_b: Any) -> str:
    """
    Deterministic chat id for an unordered pair of users.
    - "dm_<lo>_<hi>" with the pair sorted
    - longer than 36 chars -> "dm_" + first 16 hex chars of sha1("<lo>_<hi>")
    derive(a, b) == derive(b, a) for every valid pair.
    """
    lo, hi = sorted_pair(member_a, member_b)
    joined = f"{lo}_{hi}"
    chat_id = DM_PREFIX + joined
    if len(chat_id) > MAX_CANONICAL_ID_LENGTH:
        digest = hashlib.sha1(joined.encode("utf-8")).hexdigest()
        chat_id = DM_PREFIX + digest[:HASH_PREFIX_LENGTH]
    return chat_id


def _attribute(doc: Dict[str, Any], name: str) -> Any:
    """doc.data.<name> if set, else doc.<name>."""
    if not isinstance(doc, dict):
        return None
    nested = doc.get("data")
    if isinstance(nested, dict) and nested.get(name) is not None:
        return nested[name]
    return doc.get(name)


def document_id(doc: Dict[str, Any]) -> str:
    """Store id of a document ($id, falling back to id)."""
    if not isinstance(doc, dict):
        return ""
    value = doc.get("$id") or doc.get("id")
    return str(value) if value is not None else ""


def chat_members(doc: Dict[str, Any]) -> Optional[List[str]]:
    """
    Members of a chat document as strings.
    Older documents nest attributes under "data"; the nested list wins when present.
    Returns None when the document has no member list at all.
    """
    members = _attribute(doc, "members")
    if not isinstance(members, (list, tuple)):
        return None
    return ["" if m is None else str(m) for m in members]


def chat_type(doc: Dict[str, Any]) -> str:
    value = _attribute(doc, "type")
    return str(value).strip().lower() if value else ""


def document_payload(doc: Dict[str, Any]) -> Dict[str, Any]:
    """
    User attributes of a document, without store system fields ($id, $createdAt, ...).
    Nested "data" attributes override top-level ones, same as member lookup.
    """
    if not isinstance(doc, dict):
        return {}
    payload: Dict[str, Any] = {}
    for key, value in doc.items():
        if key == "data" and isinstance(value, dict):
            continue
        if key == "id" or str(key).startswith("$"):
            continue
        payload[key] = value
    nested = doc.get("data")
    if isinstance(nested, dict):
        payload.update({k: v for k, v in nested.items() if not str(k).startswith("$")})
    return payload
