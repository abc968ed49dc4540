"""Conflict resolution strategies.

Strategy selection is driven by two tables: ``FIELD_CATEGORIES`` maps each
field to a category and ``DEFAULT_RULES`` lists, in precedence order, which
category combinations pick which strategy. Deployments can pass their own
rules to ``ConflictResolutionEngine``.

Selection and merging are pure functions of the conflict fields and the two
payloads; only ``ConflictResolutionEngine`` touches the store.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Literal, Optional

from recordsync.core.timestamps import parse_timestamp
from recordsync.schemas.sync import ResolutionStrategy, SyncResult
from recordsync.services.store import RecordStore
from recordsync.services.validation import Validator, validate_update

logger = logging.getLogger(__name__)

DEFAULT_NOTES_SEPARATOR = "\n\n--- Merged from mobile ---\n"


class FieldCategory(str, Enum):
    IDENTITY = "identity"
    MERGEABLE = "mergeable"
    CONTACT = "contact"
    BUSINESS = "business"
    OTHER = "other"


FIELD_CATEGORIES: dict[str, FieldCategory] = {
    "id": FieldCategory.IDENTITY,
    "owner_id": FieldCategory.IDENTITY,
    "created_at": FieldCategory.IDENTITY,
    "interests": FieldCategory.MERGEABLE,
    "notes": FieldCategory.MERGEABLE,
    "phone": FieldCategory.CONTACT,
    "email": FieldCategory.CONTACT,
    "website": FieldCategory.CONTACT,
    "name": FieldCategory.BUSINESS,
    "title": FieldCategory.BUSINESS,
    "company": FieldCategory.BUSINESS,
}


@dataclass(frozen=True)
class StrategyRule:
    """Pick ``strategy`` when any/all conflict fields fall in ``category``.

    With ``min_client_lead`` set, the rule only applies when the client's
    event time is more than that far ahead of the server's last write.
    """
    match: Literal["any", "all"]
    category: FieldCategory
    strategy: ResolutionStrategy
    min_client_lead: Optional[timedelta] = None


def build_rules(business_client_lead: timedelta = timedelta(hours=1)) -> tuple[StrategyRule, ...]:
    """Default precedence table with a configurable business-info lead time."""
    return (
        # Data integrity fields are never client-overridable
        StrategyRule("any", FieldCategory.IDENTITY, "server_wins"),
        StrategyRule("all", FieldCategory.MERGEABLE, "merge"),
        # Contact details were most likely just typed in on the device
        StrategyRule("all", FieldCategory.CONTACT, "client_wins"),
        StrategyRule("any", FieldCategory.BUSINESS, "client_wins", min_client_lead=business_client_lead),
    )


DEFAULT_RULES = build_rules()
DEFAULT_STRATEGY: ResolutionStrategy = "server_wins"


def categorize(field: str, categories: dict[str, FieldCategory] = FIELD_CATEGORIES) -> FieldCategory:
    return categories.get(field, FieldCategory.OTHER)


def client_lead_time(client_data: Optional[dict[str, Any]], server_data: Optional[dict[str, Any]]) -> Optional[timedelta]:
    """How far the client's event time is ahead of the server's last write."""
    client_data = client_data or {}
    server_data = server_data or {}
    client_time = parse_timestamp(client_data.get("captured_at")) or parse_timestamp(client_data.get("updated_at"))
    server_time = parse_timestamp(server_data.get("updated_at")) or parse_timestamp(server_data.get("captured_at"))
    if client_time is None or server_time is None:
        return None
    return client_time - server_time


def select_strategy(
    conflict_fields: list[str],
    client_data: Optional[dict[str, Any]],
    server_data: Optional[dict[str, Any]],
    rules: tuple[StrategyRule, ...] = DEFAULT_RULES,
    categories: dict[str, FieldCategory] = FIELD_CATEGORIES,
) -> ResolutionStrategy:
    """Walk the rule table in order and return the first matching strategy."""
    if not conflict_fields:
        # Identical duplicate create: nothing to write
        return DEFAULT_STRATEGY

    field_categories = [categorize(f, categories) for f in conflict_fields]

    for rule in rules:
        hits = [c == rule.category for c in field_categories]
        matched = any(hits) if rule.match == "any" else all(hits)
        if not matched:
            continue
        if rule.min_client_lead is not None:
            lead = client_lead_time(client_data, server_data)
            if lead is None or lead <= rule.min_client_lead:
                continue
        return rule.strategy

    return DEFAULT_STRATEGY


def merge_lists(client_value: Any, server_value: Any) -> list:
    """Union of both lists without duplicates, server items first."""
    client_items = client_value if isinstance(client_value, list) else []
    server_items = server_value if isinstance(server_value, list) else []
    merged = []
    for item in server_items + client_items:
        if item not in merged:
            merged.append(item)
    return merged


def merge_text(client_value: Any, server_value: Any, separator: str = DEFAULT_NOTES_SEPARATOR) -> Optional[str]:
    """Keep both texts when they differ, otherwise whichever is non-empty."""
    client_text = client_value or ""
    server_text = server_value or ""
    if client_text and server_text and client_text != server_text:
        return f"{server_text}{separator}{client_text}"
    return client_text or server_text or None


def merge_fields(
    conflict_fields: list[str],
    client_data: Optional[dict[str, Any]],
    server_data: Optional[dict[str, Any]],
    separator: str = DEFAULT_NOTES_SEPARATOR,
) -> dict[str, Any]:
    """Build the update that merges both sides of every conflicting field."""
    client_data = client_data or {}
    server_data = server_data or {}
    merged = {}
    for field in conflict_fields:
        client_value = client_data.get(field)
        server_value = server_data.get(field)
        if field == "interests":
            merged[field] = merge_lists(client_value, server_value)
        elif field == "notes":
            merged[field] = merge_text(client_value, server_value, separator)
        else:
            merged[field] = client_value
    return merged


@dataclass
class ResolutionPlan:
    strategy: ResolutionStrategy
    changes: Optional[dict[str, Any]] = None


def plan_resolution(
    conflict_fields: list[str],
    client_data: Optional[dict[str, Any]],
    server_data: Optional[dict[str, Any]],
    strategy: Optional[ResolutionStrategy] = None,
    rules: tuple[StrategyRule, ...] = DEFAULT_RULES,
    separator: str = DEFAULT_NOTES_SEPARATOR,
) -> ResolutionPlan:
    """Decide the strategy and the changes to write, without side effects."""
    if strategy is None:
        strategy = select_strategy(conflict_fields, client_data, server_data, rules)

    if strategy == "client_wins":
        return ResolutionPlan(strategy, dict(client_data or {}))
    if strategy == "merge":
        return ResolutionPlan(strategy, merge_fields(conflict_fields, client_data, server_data, separator))
    return ResolutionPlan(strategy)


class ConflictResolutionEngine:
    """Resolves reported conflicts and writes the outcome to the store."""

    def __init__(
        self,
        store: RecordStore,
        rules: tuple[StrategyRule, ...] = DEFAULT_RULES,
        notes_separator: str = DEFAULT_NOTES_SEPARATOR,
        update_validator: Validator = validate_update,
    ):
        self.store = store
        self.rules = rules
        self.notes_separator = notes_separator
        self.update_validator = update_validator

    def strategy_for(self, conflict: SyncResult) -> ResolutionStrategy:
        """The strategy the rule table picks for this conflict."""
        if conflict.conflict_data is None:
            return DEFAULT_STRATEGY
        data = conflict.conflict_data
        return select_strategy(data.conflict_fields, data.client_data, data.server_data, self.rules)

    async def resolve(
        self,
        owner_id: str,
        conflict: SyncResult,
        strategy: Optional[ResolutionStrategy] = None,
        resolved_data: Optional[dict[str, Any]] = None,
    ) -> SyncResult:
        """
        Resolve one conflict.

        Args:
            owner_id: Owner of the conflicting record
            conflict: A result previously reported with status "conflict"
            strategy: Force a strategy instead of consulting the rule table
            resolved_data: Explicit payload to write for client_wins/merge
        """
        if conflict.conflict_data is None or not conflict.server_id:
            return conflict.model_copy(update={"status": "error", "error": "Invalid conflict data"})

        data = conflict.conflict_data
        plan = plan_resolution(
            data.conflict_fields,
            data.client_data,
            data.server_data,
            strategy=strategy,
            rules=self.rules,
            separator=self.notes_separator,
        )

        if plan.strategy == "manual":
            logger.warning(
                f"Conflict flagged for manual review: {conflict.local_id} "
                f"(record {conflict.server_id}, fields {data.conflict_fields})"
            )
            return conflict.model_copy(update={"status": "conflict", "error": "Conflict requires manual review"})

        if plan.strategy == "server_wins":
            logger.info(f"Applying server_wins to {conflict.local_id} (record {conflict.server_id})")
            return SyncResult(
                local_id=conflict.local_id,
                server_id=conflict.server_id,
                action=conflict.action,
                status="success",
            )

        changes = resolved_data if resolved_data is not None else plan.changes
        try:
            values = self.update_validator(changes or {})
            updated = await self.store.update(owner_id, conflict.server_id, values)
        except Exception as e:
            logger.error(f"Error applying {plan.strategy} to {conflict.local_id}: {e}")
            return conflict.model_copy(update={
                "status": "error",
                "error": f"Failed to apply {plan.strategy} strategy: {e}",
            })

        if updated is None:
            return conflict.model_copy(update={
                "status": "error",
                "error": f"Failed to apply {plan.strategy} strategy: record not found",
            })

        logger.info(
            f"Applied {plan.strategy} to {conflict.local_id} "
            f"(record {conflict.server_id}, fields {sorted(values)})"
        )
        return SyncResult(
            local_id=conflict.local_id,
            server_id=conflict.server_id,
            action=conflict.action,
            status="success",
        )

    async def resolve_many(self, owner_id: str, conflicts: list[SyncResult]) -> list[SyncResult]:
        """Resolve each conflict with the rule table; one failure doesn't stop the rest."""
        results = []
        for conflict in conflicts:
            try:
                results.append(await self.resolve(owner_id, conflict))
            except Exception as e:
                logger.error(f"Error resolving conflict {conflict.local_id}: {e}")
                results.append(conflict.model_copy(update={
                    "status": "error",
                    "error": f"Failed to resolve conflict: {e}",
                }))
        return results
