"""
Record Store - single source of truth for kernel entities.

Every mutation goes through one re-entrant lock, so transitions are
serializable even when a threaded runtime (FastAPI worker threads, CLI) shares
the store. Components never mutate snapshots directly: they hand the store a
snapshot to `put` or a QueueTransition to `advance`.

Usage:
    store = InMemoryRecordStore()
    store.put(KIND_PRODUCT, product)
    item = store.advance(item_id, QueueTransition(status=VideoStatus.APPROVED, ...))
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Type, Union

from pydantic import BaseModel, ValidationError

from .config import DisclosureVocabulary
from .disclosures import missing_disclosures
from .errors import InvalidTransition, InvariantViolation, NotFound
from .models import (
    MANDATORY_DISCLOSURES,
    ComplianceStatus,
    EngagementEvent,
    Lead,
    Opportunity,
    Product,
    QueueItem,
    QueueTransition,
    ScriptPlan,
    VideoStatus,
    apply_changes,
    utcnow,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Entity kinds
# ============================================================================

KIND_PRODUCT = "product"
KIND_OPPORTUNITY = "opportunity"
KIND_SCRIPT_PLAN = "script_plan"
KIND_QUEUE_ITEM = "queue_item"
KIND_ENGAGEMENT = "engagement_event"
KIND_LEAD = "lead"

ENTITY_MODELS: Dict[str, Type[BaseModel]] = {
    KIND_PRODUCT: Product,
    KIND_OPPORTUNITY: Opportunity,
    KIND_SCRIPT_PLAN: ScriptPlan,
    KIND_QUEUE_ITEM: QueueItem,
    KIND_ENGAGEMENT: EngagementEvent,
    KIND_LEAD: Lead,
}

# Fields with a secondary index, per kind
INDEXED_FIELDS: Dict[str, Tuple[str, ...]] = {
    KIND_PRODUCT: ("merge_key", "category"),
    KIND_OPPORTUNITY: ("product_id", "priority", "recommended_tier"),
    KIND_SCRIPT_PLAN: ("opportunity_id", "product_id"),
    KIND_QUEUE_ITEM: ("status", "compliance_status", "script_plan_id"),
    KIND_ENGAGEMENT: ("video_id",),
    KIND_LEAD: ("source_video_id", "tier"),
}


# ============================================================================
# Queue item lattice
# ============================================================================

ALLOWED_TRANSITIONS: Dict[VideoStatus, frozenset] = {
    VideoStatus.GENERATING: frozenset({
        VideoStatus.GENERATING,
        VideoStatus.COMPLIANCE_REVIEW,
        VideoStatus.READY_FOR_PREVIEW,
        VideoStatus.REQUIRES_FIXES,
        VideoStatus.REJECTED,
    }),
    VideoStatus.COMPLIANCE_REVIEW: frozenset({
        VideoStatus.COMPLIANCE_REVIEW,
        VideoStatus.GENERATING,
        VideoStatus.READY_FOR_PREVIEW,
        VideoStatus.REQUIRES_FIXES,
        VideoStatus.REJECTED,
    }),
    VideoStatus.READY_FOR_PREVIEW: frozenset({
        VideoStatus.READY_FOR_PREVIEW,
        VideoStatus.GENERATING,
        VideoStatus.COMPLIANCE_REVIEW,
        VideoStatus.REQUIRES_FIXES,
        VideoStatus.APPROVED,
        VideoStatus.REJECTED,
    }),
    VideoStatus.REQUIRES_FIXES: frozenset({
        VideoStatus.REQUIRES_FIXES,
        VideoStatus.GENERATING,
        VideoStatus.COMPLIANCE_REVIEW,
        VideoStatus.READY_FOR_PREVIEW,
        VideoStatus.REJECTED,
    }),
    VideoStatus.APPROVED: frozenset({
        VideoStatus.APPROVED,
        VideoStatus.PUBLISHED,
        VideoStatus.GENERATING,
        VideoStatus.COMPLIANCE_REVIEW,
        VideoStatus.READY_FOR_PREVIEW,
        VideoStatus.REQUIRES_FIXES,
        VideoStatus.REJECTED,
    }),
    VideoStatus.PUBLISHED: frozenset(),
    VideoStatus.REJECTED: frozenset(),
}


def is_allowed_transition(current: VideoStatus, target: VideoStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


Filter = Union[None, Mapping[str, Any], Callable[[BaseModel], bool]]


def _field_value(snapshot: BaseModel, name: str) -> Any:
    value = getattr(snapshot, name)
    return value.value if hasattr(value, "value") else value


def _matches(snapshot: BaseModel, filter: Filter) -> bool:
    if filter is None:
        return True
    if callable(filter):
        return bool(filter(snapshot))
    for name, expected in filter.items():
        expected = expected.value if hasattr(expected, "value") else expected
        if _field_value(snapshot, name) != expected:
            return False
    return True


# ============================================================================
# Store base
# ============================================================================

class RecordStore(ABC):
    """
    Base class for kernel stores.

    Subclasses implement the raw storage primitives (_read, _write, _delete,
    _iter, _increment, _read_counter). Invariant checks, the transition
    lattice and locking live here so every backend enforces the same rules.
    """

    def __init__(self, disclosure_vocabulary: Optional[DisclosureVocabulary] = None):
        self._lock = threading.RLock()
        self.disclosure_vocabulary = disclosure_vocabulary or DisclosureVocabulary()

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def _read(self, kind: str, entity_id: str) -> Optional[BaseModel]:
        ...

    @abstractmethod
    def _write(self, kind: str, snapshot: BaseModel) -> None:
        ...

    @abstractmethod
    def _delete(self, kind: str, entity_id: str) -> bool:
        ...

    @abstractmethod
    def _iter(self, kind: str) -> Iterator[BaseModel]:
        """Iterate snapshots in insertion order."""
        ...

    @abstractmethod
    def _increment(self, key: str, limit: Optional[int]) -> Optional[int]:
        ...

    @abstractmethod
    def _read_counter(self, key: str) -> int:
        ...

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def get(self, kind: str, entity_id: str) -> Optional[BaseModel]:
        """Return a snapshot copy, or None when absent."""
        self._check_kind(kind)
        snapshot = self._read(kind, entity_id)
        return snapshot.model_copy(deep=True) if snapshot is not None else None

    def require(self, kind: str, entity_id: str) -> BaseModel:
        """Like get() but raises NotFound."""
        snapshot = self.get(kind, entity_id)
        if snapshot is None:
            raise NotFound(kind, entity_id)
        return snapshot

    def put(self, kind: str, snapshot: BaseModel) -> BaseModel:
        """
        Store a snapshot after validating its invariants.

        Returns:
            The stored snapshot (re-validated copy)

        Raises:
            InvariantViolation: If the snapshot breaks an entity invariant
        """
        self._check_kind(kind)
        with self._lock:
            validated = self._validate(kind, snapshot)
            previous = self._read(kind, self._entity_id(validated))
            self._check_succession(kind, previous, validated)
            self._write(kind, validated)
            return validated.model_copy(deep=True)

    def list(self, kind: str, filter: Filter = None, sort_key: Optional[str] = None,
             descending: bool = False) -> Iterator[BaseModel]:
        """
        Lazily iterate snapshots.

        Ordering is insertion order unless sort_key names a field.
        """
        self._check_kind(kind)
        with self._lock:
            snapshots = [s.model_copy(deep=True) for s in self._iter(kind)]

        if sort_key:
            snapshots.sort(key=lambda s: _field_value(s, sort_key), reverse=descending)

        return (s for s in snapshots if _matches(s, filter))

    def query(self, kind: str, **equals: Any) -> List[BaseModel]:
        """Equality query on indexed fields."""
        indexed = INDEXED_FIELDS.get(kind, ())
        unknown = [name for name in equals if name not in indexed]
        if unknown:
            raise ValueError(f"Fields not indexed for {kind}: {', '.join(unknown)}")
        return list(self.list(kind, filter=equals))

    def count(self, kind: str, filter: Filter = None) -> int:
        return sum(1 for _ in self.list(kind, filter=filter))

    def delete(self, kind: str, entity_id: str) -> bool:
        self._check_kind(kind)
        with self._lock:
            return self._delete(kind, entity_id)

    def advance(self, item_id: str, transition: QueueTransition) -> QueueItem:
        """
        Apply a queue item transition atomically.

        Raises:
            NotFound: If the item does not exist
            InvalidTransition: If the lattice forbids the move, the item is
                terminal, or from_status no longer matches
            InvariantViolation: If the resulting snapshot is invalid
        """
        with self._lock:
            current = self._read(KIND_QUEUE_ITEM, item_id)
            if current is None:
                raise NotFound(KIND_QUEUE_ITEM, item_id)

            if transition.from_status is not None and current.status != transition.from_status:
                raise InvalidTransition(
                    f"Item {item_id} is {current.status.value}, expected {transition.from_status.value}"
                )

            if not is_allowed_transition(current.status, transition.status):
                raise InvalidTransition(
                    f"Cannot move item {item_id} from {current.status.value} to {transition.status.value}"
                )

            updated = self._apply_transition(current, transition)
            validated = self._validate(KIND_QUEUE_ITEM, updated)
            self._check_succession(KIND_QUEUE_ITEM, current, validated)
            self._write(KIND_QUEUE_ITEM, validated)

        logger.debug(
            f"Item {item_id}: {current.status.value} -> {validated.status.value}"
            f" ({transition.reason or 'transition'})"
        )
        return validated.model_copy(deep=True)

    def increment_counter(self, key: str, limit: Optional[int] = None) -> Optional[int]:
        """
        Atomically increment a counter.

        Returns:
            The new value, or None if the counter already reached `limit`
        """
        with self._lock:
            return self._increment(key, limit)

    def get_counter(self, key: str) -> int:
        with self._lock:
            return self._read_counter(key)

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------

    def _check_kind(self, kind: str) -> None:
        if kind not in ENTITY_MODELS:
            raise ValueError(f"Unknown entity kind: {kind}")

    @staticmethod
    def _entity_id(snapshot: BaseModel) -> str:
        return snapshot.id

    def _validate(self, kind: str, snapshot: BaseModel) -> BaseModel:
        model = ENTITY_MODELS[kind]
        if not isinstance(snapshot, model):
            raise InvariantViolation(f"Expected {model.__name__} for {kind}, got {type(snapshot).__name__}")

        try:
            validated = model.model_validate(snapshot.model_dump())
        except ValidationError as e:
            raise InvariantViolation(f"Invalid {kind}: {e}") from e

        if kind == KIND_QUEUE_ITEM and validated.status == VideoStatus.APPROVED:
            self._check_approved(validated)

        return validated

    def _check_approved(self, item: QueueItem) -> None:
        if item.compliance_status != ComplianceStatus.COMPLIANT:
            raise InvariantViolation(
                f"Item {item.id} cannot be APPROVED with compliance {item.compliance_status.value}"
            )
        required = list(dict.fromkeys(MANDATORY_DISCLOSURES + item.required_disclosures))
        missing = missing_disclosures(item.script_content, required, self.disclosure_vocabulary)
        if missing:
            raise InvariantViolation(
                f"Item {item.id} cannot be APPROVED without disclosures: {', '.join(missing)}"
            )

    def _check_succession(self, kind: str, previous: Optional[BaseModel], current: BaseModel) -> None:
        if previous is None:
            return

        if kind == KIND_QUEUE_ITEM:
            if current.updated_at < previous.updated_at:
                raise InvariantViolation(f"updated_at went backwards for item {current.id}")
            if previous.is_terminal and current.model_dump() != previous.model_dump():
                raise InvariantViolation(f"Item {current.id} is terminal ({previous.status.value})")

        elif kind == KIND_ENGAGEMENT:
            for name, value in current.counters.items():
                if value < previous.counters[name]:
                    raise InvariantViolation(
                        f"{name} decreased for video {current.video_id}: "
                        f"{previous.counters[name]} -> {value}"
                    )

    @staticmethod
    def _apply_transition(current: QueueItem, transition: QueueTransition) -> QueueItem:
        item = apply_changes(current, transition.changes) if transition.changes else current

        update: Dict[str, Any] = {
            "status": transition.status,
            # updated_at is non-decreasing even if the wall clock steps back
            "updated_at": max(utcnow(), current.updated_at),
        }
        for name in (
            "compliance_status",
            "compliance_validation",
            "compliance_issues",
            "required_disclosures",
            "reviewer_notes",
            "approval_date",
            "rejection_reason",
            "last_error",
            "regeneration_required",
        ):
            value = getattr(transition, name)
            if value is not None:
                update[name] = value

        if transition.clear_last_error and transition.last_error is None:
            update["last_error"] = None

        if transition.artifacts is not None:
            update["artifacts"] = {**item.artifacts, **transition.artifacts}

        return item.model_copy(update=update)


# ============================================================================
# In-memory backend
# ============================================================================

class InMemoryRecordStore(RecordStore):
    """Dict-backed store for single-process use and tests."""

    def __init__(self, disclosure_vocabulary: Optional[DisclosureVocabulary] = None):
        super().__init__(disclosure_vocabulary)
        # dicts keep insertion order
        self._records: Dict[str, Dict[str, BaseModel]] = {kind: {} for kind in ENTITY_MODELS}
        self._counters: Dict[str, int] = {}

    def _read(self, kind: str, entity_id: str) -> Optional[BaseModel]:
        return self._records[kind].get(entity_id)

    def _write(self, kind: str, snapshot: BaseModel) -> None:
        self._records[kind][self._entity_id(snapshot)] = snapshot

    def _delete(self, kind: str, entity_id: str) -> bool:
        return self._records[kind].pop(entity_id, None) is not None

    def _iter(self, kind: str) -> Iterator[BaseModel]:
        return iter(list(self._records[kind].values()))

    def _increment(self, key: str, limit: Optional[int]) -> Optional[int]:
        current = self._counters.get(key, 0)
        if limit is not None and current >= limit:
            return None
        self._counters[key] = current + 1
        return current + 1

    def _read_counter(self, key: str) -> int:
        return self._counters.get(key, 0)
