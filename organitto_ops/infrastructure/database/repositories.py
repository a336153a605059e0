"""Data access layer for record store tables"""

import dataclasses
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from organitto_ops.domain.exceptions import BackendUnavailable, DuplicateRecord
from organitto_ops.domain.models import (
    ActivityEntry,
    FinancialRecord,
    Priority,
    Product,
    RecordKind,
    RecordStatus,
    Role,
    Stage,
    StageHistoryEntry,
    UserProfile,
    Vendor,
)
from organitto_ops.infrastructure.database import models as orm
from organitto_ops.infrastructure.database.changes import DELETE, INSERT, UPDATE, ChangeEvent, ChangeFeed

logger = logging.getLogger(__name__)


def _parse_id(value: Any) -> Optional[uuid.UUID]:
    """UUID primary key from a string id; None when malformed (treated as not found)"""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _plain(values: Dict[str, Any]) -> Dict[str, Any]:
    """Unwrap enums to their stored string values"""
    return {k: v.value if isinstance(v, Enum) else v for k, v in values.items()}


def _row_dict(entity: Any) -> Dict[str, Any]:
    row = {}
    for key, value in dataclasses.asdict(entity).items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, uuid.UUID):
            value = str(value)
        row[key] = value
    return row


class _Repository:
    table = ""

    def __init__(self, db: Session, changes: List[ChangeEvent]):
        self.db = db
        self._changes = changes

    def _stage(self, event_type: str, entity: Any) -> None:
        """Queue a change event; it is published only if the transaction commits"""
        self._changes.append(ChangeEvent(table=self.table, type=event_type, row=_row_dict(entity)))


class FinancialRecordRepository(_Repository):
    """Repository for expenses and investments"""

    table = "financial_records"
    _models = {RecordKind.EXPENSE: orm.Expense, RecordKind.INVESTMENT: orm.Investment}

    def _stage(self, event_type: str, entity: FinancialRecord) -> None:
        self._changes.append(
            ChangeEvent(table=f"{entity.kind.value}s", type=event_type, row=_row_dict(entity))
        )

    @staticmethod
    def _to_record(kind: RecordKind, row) -> FinancialRecord:
        return FinancialRecord(
            id=str(row.id),
            kind=kind,
            amount_cents=row.amount_cents,
            transaction_date=row.transaction_date,
            category=row.category,
            submitter_id=row.submitter_id,
            status=RecordStatus(row.status),
            proof_url=row.proof_url,
            notes=row.notes,
            approver_id=row.approver_id,
            approval_comment=row.approval_comment,
            rejection_reason=row.rejection_reason,
            created_at=row.created_at,
            decided_at=row.decided_at,
            subcategory=getattr(row, "subcategory", None),
            payment_mode=getattr(row, "payment_mode", None),
            vendor_id=getattr(row, "vendor_id", None),
            partner_id=getattr(row, "partner_id", None),
        )

    def insert(self, kind: RecordKind, fields: Dict[str, Any]) -> FinancialRecord:
        """Persist a new record; flush to get its id without committing"""
        row = self._models[kind](**_plain(fields))
        self.db.add(row)
        self.db.flush()
        record = self._to_record(kind, row)
        self._stage(INSERT, record)
        return record

    def get(self, kind: RecordKind, record_id: str) -> Optional[FinancialRecord]:
        rid = _parse_id(record_id)
        if rid is None:
            return None
        row = self.db.get(self._models[kind], rid)
        return self._to_record(kind, row) if row is not None else None

    def list(
        self,
        kind: RecordKind,
        status: Optional[RecordStatus] = None,
        submitter_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[FinancialRecord]:
        """Fetch records newest first, optionally filtered"""
        model = self._models[kind]
        query = self.db.query(model)
        if status is not None:
            query = query.filter(model.status == RecordStatus(status).value)
        if submitter_id is not None:
            query = query.filter(model.submitter_id == submitter_id)
        rows = query.order_by(model.created_at.desc()).limit(limit).all()
        return [self._to_record(kind, row) for row in rows]

    def update_if_pending(self, kind: RecordKind, record_id: str, patch: Dict[str, Any]) -> bool:
        """
        Conditional update: set `patch` only where the record is still pending.

        Returns False when no row matched, i.e. the record was decided (or
        deleted) by someone else first.
        """
        rid = _parse_id(record_id)
        if rid is None:
            return False
        model = self._models[kind]
        count = (
            self.db.query(model)
            .filter(model.id == rid, model.status == RecordStatus.PENDING.value)
            .update(_plain(patch))
        )
        if count:
            self._stage(UPDATE, self.get(kind, record_id))
        return bool(count)

    def delete(self, kind: RecordKind, record_id: str) -> bool:
        rid = _parse_id(record_id)
        if rid is None:
            return False
        row = self.db.get(self._models[kind], rid)
        if row is None:
            return False
        record = self._to_record(kind, row)
        self.db.delete(row)
        self.db.flush()
        self._stage(DELETE, record)
        return True


class ProductRepository(_Repository):
    """Repository for pipeline products"""

    table = "products"

    @staticmethod
    def _to_product(row: orm.Product) -> Product:
        return Product(
            id=str(row.id),
            name=row.name,
            category=row.category,
            priority=Priority(row.priority),
            current_stage=Stage(row.current_stage),
            progress=row.progress,
            stage_entered_at=row.stage_entered_at,
            creator_id=row.created_by,
            assigned_partners=list(row.assigned_partners or []),
            product_type=row.product_type,
            description=row.description,
            target_launch_date=row.target_launch_date,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def insert(self, fields: Dict[str, Any]) -> Product:
        row = orm.Product(**_plain(fields))
        self.db.add(row)
        self.db.flush()
        product = self._to_product(row)
        self._stage(INSERT, product)
        return product

    def get(self, product_id: str) -> Optional[Product]:
        pid = _parse_id(product_id)
        if pid is None:
            return None
        row = self.db.get(orm.Product, pid)
        return self._to_product(row) if row is not None else None

    def list(
        self,
        stage: Optional[Stage] = None,
        priority: Optional[Priority] = None,
        limit: int = 100,
    ) -> List[Product]:
        query = self.db.query(orm.Product)
        if stage is not None:
            query = query.filter(orm.Product.current_stage == Stage(stage).value)
        if priority is not None:
            query = query.filter(orm.Product.priority == Priority(priority).value)
        rows = query.order_by(orm.Product.created_at.desc()).limit(limit).all()
        return [self._to_product(row) for row in rows]

    def update_if_stage(self, product_id: str, expected_stage: Stage, patch: Dict[str, Any]) -> bool:
        """Conditional update guarded on the product still being at `expected_stage`"""
        pid = _parse_id(product_id)
        if pid is None:
            return False
        count = (
            self.db.query(orm.Product)
            .filter(orm.Product.id == pid, orm.Product.current_stage == Stage(expected_stage).value)
            .update(_plain(patch))
        )
        if count:
            self._stage(UPDATE, self.get(product_id))
        return bool(count)

    def update(self, product_id: str, patch: Dict[str, Any]) -> bool:
        """Unconditional update used by the administrative override"""
        pid = _parse_id(product_id)
        if pid is None:
            return False
        count = self.db.query(orm.Product).filter(orm.Product.id == pid).update(_plain(patch))
        if count:
            self._stage(UPDATE, self.get(product_id))
        return bool(count)


class StageHistoryRepository(_Repository):
    """Repository for the product stage history ledger"""

    table = "product_stage_history"

    @staticmethod
    def _to_entry(row: orm.ProductStageHistory) -> StageHistoryEntry:
        return StageHistoryEntry(
            id=row.id,
            product_id=str(row.product_id),
            stage=Stage(row.stage),
            entered_at=row.entered_at,
            exited_at=row.exited_at,
            moved_by=row.moved_by,
            notes=row.notes,
        )

    def open(
        self,
        product_id: str,
        stage: Stage,
        entered_at: datetime,
        moved_by: Optional[str],
        notes: Optional[str] = None,
    ) -> StageHistoryEntry:
        row = orm.ProductStageHistory(
            product_id=_parse_id(product_id),
            stage=Stage(stage).value,
            entered_at=entered_at,
            moved_by=moved_by,
            notes=notes,
        )
        self.db.add(row)
        self.db.flush()
        entry = self._to_entry(row)
        self._stage(INSERT, entry)
        return entry

    def close_open(self, product_id: str, exited_at: datetime) -> int:
        """Close every open entry for the product; tolerates finding none"""
        pid = _parse_id(product_id)
        rows = (
            self.db.query(orm.ProductStageHistory)
            .filter(orm.ProductStageHistory.product_id == pid, orm.ProductStageHistory.exited_at.is_(None))
            .all()
        )
        if not rows:
            logger.warning("No open stage history entry", extra={"product_id": str(product_id)})
        for row in rows:
            row.exited_at = exited_at
        self.db.flush()
        for row in rows:
            self._stage(UPDATE, self._to_entry(row))
        return len(rows)

    def for_product(self, product_id: str) -> List[StageHistoryEntry]:
        pid = _parse_id(product_id)
        rows = (
            self.db.query(orm.ProductStageHistory)
            .filter(orm.ProductStageHistory.product_id == pid)
            .order_by(orm.ProductStageHistory.entered_at, orm.ProductStageHistory.id)
            .all()
        )
        return [self._to_entry(row) for row in rows]


class ActivityRepository(_Repository):
    """Repository for the append-only activity log"""

    table = "activity_log"

    def append(self, user_id: str, activity_type: str, description: str) -> ActivityEntry:
        row = orm.ActivityLog(user_id=user_id, activity_type=activity_type, description=description)
        self.db.add(row)
        self.db.flush()
        entry = ActivityEntry(user_id=user_id, activity_type=activity_type, description=description)
        self._stage(INSERT, entry)
        return entry

    def recent(self, limit: int = 50) -> List[ActivityEntry]:
        rows = (
            self.db.query(orm.ActivityLog)
            .order_by(orm.ActivityLog.created_at.desc(), orm.ActivityLog.id.desc())
            .limit(limit)
            .all()
        )
        return [
            ActivityEntry(
                user_id=row.user_id,
                activity_type=row.activity_type,
                description=row.description,
                created_at=row.created_at,
            )
            for row in rows
        ]


class NotificationRepository(_Repository):
    """Repository for user notifications"""

    table = "notifications"

    def append(self, user_id: str, type: str, title: str, message: str) -> None:
        row = orm.Notification(user_id=user_id, type=type, title=title, message=message, read=False)
        self.db.add(row)
        self.db.flush()
        self._changes.append(
            ChangeEvent(
                table=self.table,
                type=INSERT,
                row={"id": row.id, "user_id": user_id, "type": type, "title": title, "message": message, "read": False},
            )
        )

    def for_user(self, user_id: str) -> List[orm.Notification]:
        return (
            self.db.query(orm.Notification)
            .filter(orm.Notification.user_id == user_id)
            .order_by(orm.Notification.created_at.desc(), orm.Notification.id.desc())
            .all()
        )


class UserRepository(_Repository):
    """Repository for user profiles"""

    table = "users"

    @staticmethod
    def _to_profile(row: orm.User) -> UserProfile:
        return UserProfile(
            id=row.id,
            email=row.email,
            name=row.name,
            role=Role(row.role),
            approval_status=RecordStatus(row.approval_status),
            phone=row.phone,
            approved_by=row.approved_by,
            approved_at=row.approved_at,
            rejection_reason=row.rejection_reason,
            created_at=row.created_at,
        )

    def insert(self, fields: Dict[str, Any]) -> UserProfile:
        row = orm.User(**_plain(fields))
        self.db.add(row)
        self.db.flush()
        profile = self._to_profile(row)
        self._stage(INSERT, profile)
        return profile

    def get(self, user_id: str) -> Optional[UserProfile]:
        row = self.db.get(orm.User, user_id)
        return self._to_profile(row) if row is not None else None

    def list_by_status(self, status: RecordStatus) -> List[UserProfile]:
        rows = (
            self.db.query(orm.User)
            .filter(orm.User.approval_status == RecordStatus(status).value)
            .order_by(orm.User.created_at.desc())
            .all()
        )
        return [self._to_profile(row) for row in rows]

    def update_if_pending(self, user_id: str, patch: Dict[str, Any]) -> bool:
        count = (
            self.db.query(orm.User)
            .filter(orm.User.id == user_id, orm.User.approval_status == RecordStatus.PENDING.value)
            .update(_plain(patch))
        )
        if count:
            self._stage(UPDATE, self.get(user_id))
        return bool(count)


class VendorRepository(_Repository):
    """Repository for the supplier directory"""

    table = "vendors"

    @staticmethod
    def _to_vendor(row: orm.Vendor) -> Vendor:
        return Vendor(
            id=str(row.id),
            name=row.name,
            category=row.category,
            products=row.products,
            contact_person=row.contact_person,
            phone=row.phone,
            email=row.email,
            alternate_phone=row.alternate_phone,
            address=row.address,
            gst_number=row.gst_number,
            website=row.website,
            payment_terms=row.payment_terms,
            bank_details=dict(row.bank_details or {}),
            certifications=list(row.certifications or []),
            current_rating=row.current_rating,
            notes=row.notes,
            created_by=row.created_by,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def insert(self, fields: Dict[str, Any]) -> Vendor:
        row = orm.Vendor(**fields)
        self.db.add(row)
        self.db.flush()
        vendor = self._to_vendor(row)
        self._stage(INSERT, vendor)
        return vendor

    def get(self, vendor_id: str) -> Optional[Vendor]:
        vid = _parse_id(vendor_id)
        if vid is None:
            return None
        row = self.db.get(orm.Vendor, vid)
        return self._to_vendor(row) if row is not None else None

    def list(self, category: Optional[str] = None, limit: int = 200) -> List[Vendor]:
        """Fetch vendors alphabetically, optionally for one category"""
        query = self.db.query(orm.Vendor)
        if category is not None:
            query = query.filter(orm.Vendor.category == category)
        rows = query.order_by(orm.Vendor.name).limit(limit).all()
        return [self._to_vendor(row) for row in rows]

    def update(self, vendor_id: str, patch: Dict[str, Any]) -> bool:
        vid = _parse_id(vendor_id)
        if vid is None:
            return False
        count = self.db.query(orm.Vendor).filter(orm.Vendor.id == vid).update(patch)
        if count:
            self._stage(UPDATE, self.get(vendor_id))
        return bool(count)

    def delete(self, vendor_id: str) -> int:
        """
        Remove a vendor and detach the expenses that referenced it.

        Returns:
            Number of expenses detached, or -1 when the vendor does not exist
        """
        vid = _parse_id(vendor_id)
        row = self.db.get(orm.Vendor, vid) if vid is not None else None
        if row is None:
            return -1
        vendor = self._to_vendor(row)
        expenses = self.db.query(orm.Expense).filter(orm.Expense.vendor_id == vendor.id).all()
        for expense in expenses:
            expense.vendor_id = None
        self.db.delete(row)
        self.db.flush()
        for expense in expenses:
            self._changes.append(
                ChangeEvent(
                    table="expenses",
                    type=UPDATE,
                    row=_row_dict(FinancialRecordRepository._to_record(RecordKind.EXPENSE, expense)),
                )
            )
        self._stage(DELETE, vendor)
        return len(expenses)


class RecordStore:
    """
    Unit of work over one database session.

    Engines run each operation inside `transaction()`: the session commits on
    success and rolls back on any exception, so no partial mutation survives
    a failure. Database errors surface as BackendUnavailable. Change events
    queued by the repositories reach the feed only after a successful commit.
    """

    def __init__(self, db: Session, feed: Optional[ChangeFeed] = None):
        self.db = db
        self.feed = feed
        self._changes: List[ChangeEvent] = []
        self.records = FinancialRecordRepository(db, self._changes)
        self.products = ProductRepository(db, self._changes)
        self.history = StageHistoryRepository(db, self._changes)
        self.activity = ActivityRepository(db, self._changes)
        self.notifications = NotificationRepository(db, self._changes)
        self.users = UserRepository(db, self._changes)
        self.vendors = VendorRepository(db, self._changes)

    @contextmanager
    def transaction(self) -> Iterator["RecordStore"]:
        try:
            yield self
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            self._changes.clear()
            logger.warning(f"Record store constraint violated: {e.orig}")
            raise DuplicateRecord("A record with these values already exists") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            self._changes.clear()
            logger.error(f"Record store error: {e}")
            raise BackendUnavailable("Record store unavailable") from e
        except Exception:
            self.db.rollback()
            self._changes.clear()
            raise

        events = list(self._changes)
        self._changes.clear()
        if self.feed is not None:
            for event in events:
                self.feed.publish(event)
