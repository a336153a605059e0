"""Product stage pipeline - ordered, one-step-at-a-time stage progression with a history ledger"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from organitto_ops.domain.exceptions import (
    AlreadyTerminal,
    AuthorizationError,
    InvalidStateTransition,
    LaunchNotConfirmed,
    RecordNotFound,
    ValidationError,
)
from organitto_ops.domain.models import Actor, Priority, Product, Stage, StageHistoryEntry
from organitto_ops.utils.date_utils import parse_calendar_date, utc_now

if TYPE_CHECKING:
    from organitto_ops.infrastructure.database.repositories import RecordStore


STAGE_ORDER: tuple = tuple(Stage)
TERMINAL_STAGE = Stage.LAUNCHED

STAGE_LABELS = {
    Stage.IDEA: "Idea",
    Stage.RESEARCH: "Research",
    Stage.FORMULA: "Formula Creation",
    Stage.TESTING: "Testing",
    Stage.PACKAGING: "Packaging Design",
    Stage.PRINTING: "Printing",
    Stage.PRODUCTION: "Production",
    Stage.READY: "Ready to Launch",
    Stage.LAUNCHED: "Launched",
}

# Fields the "Edit Product" override may set
EDITABLE_FIELDS = frozenset({
    "name",
    "category",
    "product_type",
    "description",
    "priority",
    "current_stage",
    "progress",
    "target_launch_date",
    "assigned_partners",
})


def next_stage(stage: Stage) -> Optional[Stage]:
    """Stage immediately after `stage`, or None at the terminal stage"""
    index = STAGE_ORDER.index(Stage(stage))
    if index == len(STAGE_ORDER) - 1:
        return None
    return STAGE_ORDER[index + 1]


def progress_after_advance(new_stage: Stage, current_progress: int) -> int:
    """Progress is pinned to 100 on launch and otherwise left as edited"""
    return 100 if new_stage == TERMINAL_STAGE else current_progress


def validate_new_product(name: Optional[str], category: Optional[str], priority: Any) -> Priority:
    if not name or not name.strip():
        raise ValidationError("Product name is required")
    if not category or not category.strip():
        raise ValidationError("Category is required")
    try:
        return Priority(priority)
    except ValueError as e:
        raise ValidationError(f"Unknown priority: {priority}") from e


def validate_override(patch: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check value domains for an administrative product edit.

    Only value domains are checked. Stage ordering is not enforced here:
    an override may move a product to any stage, and it never writes
    stage history.
    """
    unknown = set(patch) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}")

    clean = dict(patch)
    if "name" in clean and not (clean["name"] or "").strip():
        raise ValidationError("Product name is required")
    if "category" in clean and not (clean["category"] or "").strip():
        raise ValidationError("Category is required")
    if "priority" in clean:
        try:
            clean["priority"] = Priority(clean["priority"])
        except ValueError as e:
            raise ValidationError(f"Unknown priority: {clean['priority']}") from e
    if "current_stage" in clean:
        try:
            clean["current_stage"] = Stage(clean["current_stage"])
        except ValueError as e:
            raise ValidationError(f"Unknown stage: {clean['current_stage']}") from e
    if "progress" in clean:
        progress = clean["progress"]
        if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
            raise ValidationError("Progress must be an integer between 0 and 100")
    if clean.get("target_launch_date") is not None:
        clean["target_launch_date"] = parse_calendar_date(clean["target_launch_date"])
    if "assigned_partners" in clean:
        clean["assigned_partners"] = sorted(set(clean["assigned_partners"] or []))
    return clean


class StagePipeline:
    """
    Moves products through the fixed stage order and keeps the stage history ledger.

    `advance` is the only guarded transition. `update_product` is the
    administrative override used by edit forms and bypasses the pipeline.
    """

    def __init__(self, store: "RecordStore", clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def create(
        self,
        name: str,
        category: str,
        priority: Any,
        creator: Actor,
        product_type: Optional[str] = None,
        description: Optional[str] = None,
        target_launch_date: Any = None,
        assigned_partners: Optional[List[str]] = None,
    ) -> Product:
        """Create a product at the first stage with one open history entry"""
        priority = validate_new_product(name, category, priority)
        now = self.clock()

        fields = {
            "name": name.strip(),
            "category": category.strip(),
            "priority": priority,
            "current_stage": STAGE_ORDER[0],
            "progress": 0,
            "stage_entered_at": now,
            "created_by": creator.user_id,
            "assigned_partners": sorted(set(assigned_partners or [])),
            "product_type": product_type or None,
            "description": description or None,
            "target_launch_date": parse_calendar_date(target_launch_date) if target_launch_date else None,
            "created_at": now,
            "updated_at": now,
        }

        with self.store.transaction():
            product = self.store.products.insert(fields)
            self.store.history.open(product.id, STAGE_ORDER[0], now, creator.user_id, notes="Product created")
            self.store.activity.append(
                creator.user_id,
                "product_created",
                f"{creator.name} created product: {product.name}",
            )
        return product

    def advance(self, product_id: str, actor: Actor, confirm_launch: bool = False) -> Product:
        """
        Move a product to the next stage.

        Closing the open history entry, updating the product and opening the
        new entry happen in one transaction. The product update is
        conditional on the stage that was read, so a concurrent advance of
        the same product loses with InvalidStateTransition.

        Moving into the terminal stage needs `confirm_launch=True`. The check
        runs against the stage read inside this transaction, so a product
        that reached the penultimate stage after the caller looked at it is
        still refused.

        Raises:
            RecordNotFound: no such product
            AlreadyTerminal: product is already launched
            LaunchNotConfirmed: next stage is terminal and confirm_launch is False
            InvalidStateTransition: another advance won the race
        """
        with self.store.transaction():
            product = self.store.products.get(product_id)
            if product is None:
                raise RecordNotFound("product", product_id)

            target = next_stage(product.current_stage)
            if target is None:
                raise AlreadyTerminal(product_id, product.current_stage.value)
            if target == TERMINAL_STAGE and not confirm_launch:
                raise LaunchNotConfirmed(product_id)

            now = self.clock()
            self.store.history.close_open(product_id, now)
            moved = self.store.products.update_if_stage(
                product_id,
                product.current_stage,
                {
                    "current_stage": target,
                    "stage_entered_at": now,
                    "progress": progress_after_advance(target, product.progress),
                    "updated_at": now,
                },
            )
            if not moved:
                raise InvalidStateTransition(product_id, product.current_stage.value, "advance")
            self.store.history.open(product_id, target, now, actor.user_id)

            self.store.activity.append(
                actor.user_id,
                "product_stage_advanced",
                f"{actor.name} moved {product.name} to {STAGE_LABELS[target]}",
            )
            return self.store.products.get(product_id)

    def update_product(self, product_id: str, patch: Dict[str, Any], actor: Actor) -> Product:
        """Administrative override: set product fields directly, bypassing pipeline rules"""
        if not actor.is_admin:
            raise AuthorizationError(f"User {actor.user_id} may not edit products")
        clean = validate_override(patch)

        with self.store.transaction():
            product = self.store.products.get(product_id)
            if product is None:
                raise RecordNotFound("product", product_id)
            if clean:
                clean["updated_at"] = self.clock()
                self.store.products.update(product_id, clean)
            updated = self.store.products.get(product_id)
            self.store.activity.append(
                actor.user_id,
                "product_updated",
                f"{actor.name} updated product: {updated.name}",
            )
            return updated

    def history(self, product_id: str) -> List[StageHistoryEntry]:
        """Stage history entries ordered by entry time"""
        with self.store.transaction():
            if self.store.products.get(product_id) is None:
                raise RecordNotFound("product", product_id)
            return self.store.history.for_product(product_id)
