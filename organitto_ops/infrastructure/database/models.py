"""SQLAlchemy ORM models for the hosted record store tables"""

import uuid
from sqlalchemy import Column, String, BigInteger, Boolean, DateTime, Date, Integer, ForeignKey, Text, JSON, Uuid
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class User(Base):
    """Application profile keyed by the identity provider's user id"""

    __tablename__ = "users"

    id = Column(Text, primary_key=True)
    email = Column(Text, nullable=False, unique=True)
    name = Column(Text, nullable=False)
    phone = Column(Text, nullable=True)
    role = Column(String(16), nullable=False, default="partner")
    approval_status = Column(String(16), nullable=False, default="pending", index=True)
    approved_by = Column(Text, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class FinancialRecordColumns:
    """Workflow columns shared by the expenses and investments tables"""

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    amount_cents = Column(BigInteger, nullable=False)
    transaction_date = Column(Date, nullable=False)
    category = Column(Text, nullable=False)
    proof_url = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default="pending", index=True)
    submitter_id = Column(Text, nullable=False, index=True)
    approver_id = Column(Text, nullable=True)
    approval_comment = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    decided_at = Column(DateTime(timezone=True), nullable=True)


class Expense(FinancialRecordColumns, Base):
    """Expense claim"""

    __tablename__ = "expenses"

    subcategory = Column(Text, nullable=True)
    payment_mode = Column(String(32), nullable=False, default="cash")
    vendor_id = Column(Text, nullable=True, index=True)  # vendors.id; cleared when the vendor is deleted


class Investment(FinancialRecordColumns, Base):
    """Partner investment; category holds the investment purpose"""

    __tablename__ = "investments"

    partner_id = Column(Text, nullable=False, index=True)


class Vendor(Base):
    """Supplier directory entry; expenses reference it through vendor_id"""

    __tablename__ = "vendors"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False, index=True)
    category = Column(Text, nullable=False, default="Raw Materials")
    products = Column(Text, nullable=True)
    contact_person = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    alternate_phone = Column(Text, nullable=True)
    address = Column(Text, nullable=True)
    gst_number = Column(Text, nullable=True)
    website = Column(Text, nullable=True)
    payment_terms = Column(Text, nullable=False, default="30 days")
    bank_details = Column(JSON, nullable=False, default=dict)
    certifications = Column(JSON, nullable=False, default=list)
    current_rating = Column(Integer, nullable=False, default=3)
    notes = Column(Text, nullable=True)
    created_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)


class Product(Base):
    """Product in the development pipeline"""

    __tablename__ = "products"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    category = Column(Text, nullable=False)
    product_type = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    priority = Column(String(16), nullable=False, default="medium")
    current_stage = Column(String(32), nullable=False, default="idea", index=True)
    progress = Column(Integer, nullable=False, default=0)
    stage_entered_at = Column(DateTime(timezone=True), nullable=False)
    target_launch_date = Column(Date, nullable=True)
    assigned_partners = Column(JSON, nullable=False, default=list)
    created_by = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    stage_history = relationship("ProductStageHistory", back_populates="product", cascade="all, delete-orphan")


class ProductStageHistory(Base):
    """One interval a product spent in one stage; exited_at is null while current"""

    __tablename__ = "product_stage_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    stage = Column(String(32), nullable=False)
    entered_at = Column(DateTime(timezone=True), nullable=False)
    exited_at = Column(DateTime(timezone=True), nullable=True)
    moved_by = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    product = relationship("Product", back_populates="stage_history")


class ActivityLog(Base):
    """Append-only human-readable activity feed"""

    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    activity_type = Column(String(64), nullable=False)
    description = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Notification(Base):
    """Per-user notification"""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    type = Column(String(64), nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
