"""Approval workflow - governs the pending -> approved/rejected lifecycle of expenses and investments"""

from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from organitto_ops.domain.exceptions import (
    AuthorizationError,
    InvalidStateTransition,
    MissingRejectionReason,
    RecordNotFound,
    ValidationError,
)
from organitto_ops.domain.models import Actor, Decision, FinancialRecord, RecordKind, RecordStatus
from organitto_ops.utils.date_utils import parse_calendar_date, utc_now

if TYPE_CHECKING:
    from organitto_ops.infrastructure.database.repositories import RecordStore


EXPENSE_CATEGORY_LABELS = {
    "raw_materials": "Raw Materials",
    "packaging": "Packaging",
    "printing": "Printing",
    "shipping": "Shipping & Logistics",
    "marketing": "Marketing & Advertising",
    "lab_testing": "Lab Testing",
    "licenses": "Licenses & Compliance",
    "utilities": "Utilities",
    "rent": "Rent & Infrastructure",
    "salaries": "Salaries & Wages",
    "equipment": "Equipment & Machinery",
    "other": "Other",
}

PAYMENT_MODES = ("cash", "upi", "bank_transfer", "card")

# Fields a submitter may correct while a record is still pending
EDITABLE_RECORD_FIELDS = {
    RecordKind.EXPENSE: frozenset({
        "amount_cents",
        "transaction_date",
        "category",
        "subcategory",
        "payment_mode",
        "vendor_id",
        "proof_url",
        "notes",
    }),
    RecordKind.INVESTMENT: frozenset({
        "amount_cents",
        "transaction_date",
        "category",
        "partner_id",
        "proof_url",
        "notes",
    }),
}


def category_label(category: str) -> str:
    """Display label for a known expense category slug; free-form labels pass through"""
    return EXPENSE_CATEGORY_LABELS.get(category, category)


def format_amount(amount_cents: int) -> str:
    """Render minor units as a grouped decimal, e.g. 500000 -> '5,000.00'"""
    return f"{amount_cents // 100:,}.{amount_cents % 100:02d}"


def validate_submission(amount_cents: Any, category: Optional[str], transaction_date: Any) -> date:
    """
    Check the fields every financial record needs.

    Future dates are accepted; no temporal validation is applied.

    Returns:
        The transaction date as a datetime.date
    """
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError("Amount must be a positive number")
    if not category or not category.strip():
        raise ValidationError("Category is required")
    return parse_calendar_date(transaction_date)


def validate_decision(
    record: FinancialRecord,
    decision: Decision,
    actor: Actor,
    rejection_reason: Optional[str],
) -> None:
    """Raise if the actor may not apply this decision to the record in its current state"""
    if not actor.is_admin:
        raise AuthorizationError(f"User {actor.user_id} may not decide on {record.kind.value}s")
    if decision == Decision.REJECT and not (rejection_reason or "").strip():
        raise MissingRejectionReason()
    if record.status != RecordStatus.PENDING:
        raise InvalidStateTransition(record.id, record.status.value, decision.value)


def validate_edit(record: FinancialRecord, patch: Dict[str, Any]) -> Dict[str, Any]:
    """Normalized field updates for a pending record, checked against its merged values"""
    clean = dict(patch)
    txn_date = validate_submission(
        clean.get("amount_cents", record.amount_cents),
        clean.get("category", record.category),
        clean.get("transaction_date", record.transaction_date),
    )
    if "transaction_date" in clean:
        clean["transaction_date"] = txn_date
    if "category" in clean:
        clean["category"] = clean["category"].strip()
    if "payment_mode" in clean and clean["payment_mode"] not in PAYMENT_MODES:
        raise ValidationError(f"Unknown payment mode: {clean['payment_mode']}")
    if "partner_id" in clean and not clean["partner_id"]:
        raise ValidationError("Partner is required")
    for optional in ("notes", "subcategory", "vendor_id"):
        if optional in clean:
            clean[optional] = clean[optional] or None
    return clean


def decision_patch(
    decision: Decision,
    actor: Actor,
    decided_at: datetime,
    comment: Optional[str] = None,
    rejection_reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Field updates for the pending -> decided transition"""
    patch: Dict[str, Any] = {
        "status": RecordStatus.APPROVED if decision == Decision.APPROVE else RecordStatus.REJECTED,
        "approver_id": actor.user_id,
        "decided_at": decided_at,
    }
    if decision == Decision.APPROVE:
        if comment:
            patch["approval_comment"] = comment
    else:
        patch["rejection_reason"] = rejection_reason.strip()
    return patch


def describe_decision(actor: Actor, record: FinancialRecord, decision: Decision) -> str:
    """Activity feed text, e.g. 'Asha approved expense: 5,000.00 for Raw Materials'"""
    verb = "approved" if decision == Decision.APPROVE else "rejected"
    return (
        f"{actor.name} {verb} {record.kind.value}: "
        f"{format_amount(record.amount_cents)} for {category_label(record.category)}"
    )


class ApprovalWorkflow:
    """
    Mediates submission, decision and deletion of financial records.

    The acting user is passed into every call; nothing is read from ambient
    session state. Each operation runs in one record-store transaction and
    fails closed: any exception leaves persisted state untouched.
    """

    def __init__(self, store: "RecordStore", clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def submit(
        self,
        kind: RecordKind,
        amount_cents: int,
        transaction_date: Any,
        category: str,
        submitter: Actor,
        proof_url: Optional[str] = None,
        notes: Optional[str] = None,
        subcategory: Optional[str] = None,
        payment_mode: Optional[str] = None,
        vendor_id: Optional[str] = None,
        partner_id: Optional[str] = None,
    ) -> FinancialRecord:
        """Create a pending record owned by the submitter"""
        kind = RecordKind(kind)
        txn_date = validate_submission(amount_cents, category, transaction_date)

        fields: Dict[str, Any] = {
            "amount_cents": amount_cents,
            "transaction_date": txn_date,
            "category": category.strip(),
            "proof_url": proof_url,
            "notes": notes or None,
            "status": RecordStatus.PENDING,
            "submitter_id": submitter.user_id,
            "created_at": self.clock(),
        }
        if kind == RecordKind.EXPENSE:
            mode = payment_mode or "cash"
            if mode not in PAYMENT_MODES:
                raise ValidationError(f"Unknown payment mode: {mode}")
            fields.update(subcategory=subcategory or None, payment_mode=mode, vendor_id=vendor_id or None)
        else:
            fields["partner_id"] = partner_id or submitter.user_id

        with self.store.transaction():
            if fields.get("vendor_id"):
                fields["vendor_id"] = self._known_vendor(fields["vendor_id"])
            record = self.store.records.insert(kind, fields)
            self.store.activity.append(
                submitter.user_id,
                f"{kind.value}_submitted",
                f"{submitter.name} submitted {kind.value}: "
                f"{format_amount(amount_cents)} for {category_label(record.category)}",
            )
        return record

    def decide(
        self,
        kind: RecordKind,
        record_id: str,
        decision: Decision,
        actor: Actor,
        comment: Optional[str] = None,
        rejection_reason: Optional[str] = None,
    ) -> FinancialRecord:
        """
        Approve or reject a pending record.

        The write is conditional on the record still being pending, so of two
        concurrent decisions exactly one wins; the loser gets
        InvalidStateTransition.

        Raises:
            AuthorizationError: actor is not an admin
            MissingRejectionReason: reject without a non-empty reason
            RecordNotFound: no such record
            InvalidStateTransition: record already decided
        """
        kind = RecordKind(kind)
        decision = Decision(decision)
        if not actor.is_admin:
            raise AuthorizationError(f"User {actor.user_id} may not decide on {kind.value}s")
        if decision == Decision.REJECT and not (rejection_reason or "").strip():
            raise MissingRejectionReason()

        with self.store.transaction():
            record = self.store.records.get(kind, record_id)
            if record is None:
                raise RecordNotFound(kind.value, record_id)

            validate_decision(record, decision, actor, rejection_reason)

            patch = decision_patch(decision, actor, self.clock(), comment, rejection_reason)
            if not self.store.records.update_if_pending(kind, record_id, patch):
                current = self.store.records.get(kind, record_id)
                status = current.status.value if current else "deleted"
                raise InvalidStateTransition(record_id, status, decision.value)

            self.store.activity.append(
                actor.user_id,
                f"{kind.value}_{patch['status'].value}",
                describe_decision(actor, record, decision),
            )
            return self.store.records.get(kind, record_id)

    def edit(self, kind: RecordKind, record_id: str, patch: Dict[str, Any], actor: Actor) -> FinancialRecord:
        """
        Correct the details of a record that is still awaiting a decision.

        Outside the state machine: status, approver and decision fields are
        never editable. The submitter or an admin may edit, and only while the
        record is pending; the write is conditional on that.

        Raises:
            ValidationError: a field is not editable or a value is invalid
            RecordNotFound: no such record
            AuthorizationError: actor is neither the submitter nor an admin
            InvalidStateTransition: record already decided
        """
        kind = RecordKind(kind)
        unknown = set(patch) - EDITABLE_RECORD_FIELDS[kind]
        if unknown:
            raise ValidationError(f"Fields not editable on a {kind.value}: {', '.join(sorted(unknown))}")

        with self.store.transaction():
            record = self.store.records.get(kind, record_id)
            if record is None:
                raise RecordNotFound(kind.value, record_id)
            if not actor.is_admin and record.submitter_id != actor.user_id:
                raise AuthorizationError(f"User {actor.user_id} may not edit {kind.value} {record_id}")
            if record.status != RecordStatus.PENDING:
                raise InvalidStateTransition(record_id, record.status.value, "edit")

            clean = validate_edit(record, patch)
            if clean.get("vendor_id"):
                clean["vendor_id"] = self._known_vendor(clean["vendor_id"])
            if not clean:
                return record

            if not self.store.records.update_if_pending(kind, record_id, clean):
                current = self.store.records.get(kind, record_id)
                status = current.status.value if current else "deleted"
                raise InvalidStateTransition(record_id, status, "edit")

            updated = self.store.records.get(kind, record_id)
            self.store.activity.append(
                actor.user_id,
                f"{kind.value}_updated",
                f"{actor.name} updated {kind.value}: "
                f"{format_amount(updated.amount_cents)} for {category_label(updated.category)}",
            )
            return updated

    def _known_vendor(self, vendor_id: str) -> str:
        vendor = self.store.vendors.get(vendor_id)
        if vendor is None:
            raise ValidationError(f"Unknown vendor: {vendor_id}")
        return vendor.id

    def delete(self, kind: RecordKind, record_id: str, actor: Actor) -> None:
        """Permanently remove a record in any status. Admin only, outside the state machine."""
        kind = RecordKind(kind)
        if not actor.is_admin:
            raise AuthorizationError(f"User {actor.user_id} may not delete {kind.value}s")

        with self.store.transaction():
            if not self.store.records.delete(kind, record_id):
                raise RecordNotFound(kind.value, record_id)
