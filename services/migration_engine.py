# services/migration_engine.py
"""
Chat identity migration: list chats, plan each one, apply the plan.

Chats are processed one at a time. A failure on one chat is recorded in its
ExecutionResult and the run moves on; only configuration and chat-listing
failures abort the whole run.
Superseded chats are left in place untouched.
"""
import datetime
import logging
from collections import Counter
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel

from config import MigrationConfig
from services.document_store import is_conflict
from services.merge_planner import MergeAction, MergePlan, SkipReason, plan_chat
from services.message_reassigner import reassign_messages
from services.paginated_lister import list_all
from utils.chat_identity import canonical_chat_id, chat_members, document_id, document_payload
from utils.errors import EntityError, ValidationError

logger = logging.getLogger(__name__)


class ExecutionOutcome(str, Enum):
    SKIPPED = "skipped"
    PLANNED = "planned" # dry-run only
    MIGRATED = "migrated"
    FAILED = "failed"


class ExecutionResult(BaseModel):
    chat_id: str
    canonical_id: Optional[str] = None
    action: Optional[MergeAction] = None
    outcome: ExecutionOutcome = ExecutionOutcome.SKIPPED
    created: bool = False
    reassigned_count: int = 0
    skip_reason: Optional[SkipReason] = None
    errors: List[str] = []


class MigrationReport(BaseModel):
    dry_run: bool = True
    total: int = 0
    created: int = 0
    reassigned: int = 0
    planned: int = 0
    failed: int = 0
    duplicate_races: int = 0
    skipped: Dict[str, int] = {}
    results: List[ExecutionResult] = []

    @property
    def skipped_total(self) -> int:
        return sum(self.skipped.values())

    def add(self, result: ExecutionResult):
        self.results.append(result)
        if result.created:
            self.created += 1
        self.reassigned += result.reassigned_count
        if result.outcome == ExecutionOutcome.SKIPPED:
            key = result.skip_reason.value if result.skip_reason else "unknown"
            self.skipped[key] = self.skipped.get(key, 0) + 1
        elif result.outcome == ExecutionOutcome.PLANNED:
            self.planned += 1
        elif result.outcome == ExecutionOutcome.FAILED:
            self.failed += 1
        if result.skip_reason == SkipReason.DUPLICATE_RACE:
            self.duplicate_races += 1

    def summary_lines(self) -> List[str]:
        lines = [
            f"Mode: {'DRY-RUN' if self.dry_run else 'LIVE'}",
            f"Chats examined: {self.total}",
            f"Canonical chats created: {self.created}",
            f"Messages reassigned: {self.reassigned}",
        ]
        if self.dry_run:
            lines.append(f"Chats that would be migrated: {self.planned}")
        skipped = ", ".join(f"{reason}={count}" for reason, count in sorted(self.skipped.items()))
        lines.append(f"Skipped: {self.skipped_total}" + (f" ({skipped})" if skipped else ""))
        if self.duplicate_races:
            lines.append(f"Canonical already created by another run: {self.duplicate_races}")
        lines.append(f"Failed: {self.failed}")
        for result in self.results:
            label = result.chat_id + (f" -> {result.canonical_id}" if result.canonical_id else "")
            for error in result.errors:
                lines.append(f"  ! {label}: {error}")
        return lines


def _utc_now_iso() -> str:
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_canonical_payload(chat: Dict[str, Any], members: List[str]) -> Dict[str, Any]:
    """Original chat attributes + sorted members + createdAt (kept if present)."""
    payload = document_payload(chat)
    payload["members"] = sorted(members)
    if not payload.get("createdAt"):
        payload["createdAt"] = _utc_now_iso()
    return payload


async def execute_plan(store, config: MigrationConfig, chat: Dict[str, Any], plan: MergePlan, dry_run: bool) -> ExecutionResult:
    result = ExecutionResult(chat_id=plan.chat_id, canonical_id=plan.canonical_id, action=plan.action)

    if plan.is_skip:
        result.skip_reason = plan.skip_reason
        logger.info("Skip %s: %s%s", plan.chat_id, plan.skip_reason.value, f" ({plan.detail})" if plan.detail else "")
        return result

    if dry_run:
        if plan.action == MergeAction.CREATE_CANONICAL_AND_REASSIGN:
            logger.info("[DRY-RUN] Canonical %s missing for %s -> would create and reassign messages",
                        plan.canonical_id, plan.chat_id)
        else:
            logger.info("[DRY-RUN] Canonical %s exists for %s -> would reassign messages",
                        plan.canonical_id, plan.chat_id)
        result.outcome = ExecutionOutcome.PLANNED
        return result

    if plan.action == MergeAction.CREATE_CANONICAL_AND_REASSIGN:
        payload = build_canonical_payload(chat, plan.members)
        response = await store.create_document(config.chats_collection_id, plan.canonical_id, payload)
        if response.get("success"):
            result.created = True
            logger.info("Created canonical chat %s for %s", plan.canonical_id, plan.chat_id)
        elif is_conflict(response):
            # Someone else created it between the existence check and now; it exists, so keep going
            result.skip_reason = SkipReason.DUPLICATE_RACE
            logger.info("Canonical chat %s already exists (created concurrently), reassigning only", plan.canonical_id)
        else:
            result.errors.append(f"Creating canonical chat {plan.canonical_id} failed: "
                                 f"{response.get('message') or 'unknown error'}")
            result.outcome = ExecutionOutcome.FAILED
            logger.warning("Create failed for %s -> %s, messages left in place", plan.chat_id, plan.canonical_id)
            return result

    reassigned = await reassign_messages(store, config, plan.chat_id, plan.canonical_id)
    result.reassigned_count = reassigned.count
    result.errors.extend(reassigned.errors)
    if result.errors:
        result.outcome = ExecutionOutcome.FAILED
    elif plan.action == MergeAction.REASSIGN_ONLY and not reassigned.count:
        # Messages left the chat between planning and now
        result.outcome = ExecutionOutcome.SKIPPED
        result.skip_reason = SkipReason.ALREADY_MIGRATED
        logger.info("Skip %s: already_migrated (no messages left, canonical %s)", plan.chat_id, plan.canonical_id)
    else:
        result.outcome = ExecutionOutcome.MIGRATED
    return result


def _target_id(chat: Dict[str, Any]) -> Optional[str]:
    """Canonical id for a chat when it is a valid pair, used to label failures."""
    members = chat_members(chat)
    if not members or len(members) != 2:
        return None
    try:
        return canonical_chat_id(members[0], members[1])
    except ValidationError:
        return None


async def migrate_chat(
    store,
    config: MigrationConfig,
    chat: Dict[str, Any],
    dry_run: bool,
    known_canonical_ids: Optional[Set[str]] = None,
) -> ExecutionResult:
    """Plan + execute one chat. Never raises: every failure ends up in the result."""
    chat_id = document_id(chat)
    target_id = _target_id(chat)
    try:
        plan = await plan_chat(store, config, chat, known_canonical_ids=known_canonical_ids)
        result = await execute_plan(store, config, chat, plan, dry_run)
    except EntityError as e:
        logger.warning("Error migrating chat %s: %s", chat_id, e)
        return ExecutionResult(chat_id=chat_id, canonical_id=e.canonical_id or target_id,
                               outcome=ExecutionOutcome.FAILED, errors=[str(e)])
    except Exception as e:
        logger.exception("Unexpected error migrating chat %s", chat_id)
        return ExecutionResult(chat_id=chat_id, canonical_id=target_id, outcome=ExecutionOutcome.FAILED,
                               errors=[f"{type(e).__name__}: {e}"])

    if known_canonical_ids is not None and result.canonical_id:
        if result.created or result.skip_reason == SkipReason.DUPLICATE_RACE:
            known_canonical_ids.add(result.canonical_id)
        elif dry_run and result.action == MergeAction.CREATE_CANONICAL_AND_REASSIGN:
            known_canonical_ids.add(result.canonical_id)
    return result


async def run_migration(store, config: MigrationConfig, dry_run: bool = True) -> MigrationReport:
    """
    Whole run. FetchError from listing chats propagates (nothing has been processed yet);
    everything after that is per-chat and collected into the report.
    """
    chats = await list_all(store, config.chats_collection_id, page_size=config.page_size)
    logger.info("Found %d chat documents", len(chats))

    report = MigrationReport(dry_run=dry_run, total=len(chats))
    known_canonical_ids: Set[str] = set()
    for chat in chats:
        result = await migrate_chat(store, config, chat, dry_run, known_canonical_ids)
        report.add(result)

    outcomes = Counter(r.outcome.value for r in report.results)
    logger.info("Migration finished: %s", dict(outcomes))
    return report
