"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from organitto_ops.domain.models import Decision, Priority, RecordKind, RecordStatus, Role, Stage


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid")


class _Response(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Finance

class SubmitRecordRequest(_Request):
    """Request body for POST /v1/finance/{kind}"""

    amount_cents: int = Field(..., gt=0, description="Amount in minor currency units")
    transaction_date: date
    category: str = Field(..., min_length=1, description="Expense category, or investment purpose")
    proof_url: Optional[str] = None
    notes: Optional[str] = None
    subcategory: Optional[str] = None
    payment_mode: Optional[str] = None
    vendor_id: Optional[str] = None
    partner_id: Optional[str] = None


class DecisionRequest(_Request):
    """Request body for POST /v1/finance/{kind}/{record_id}/decision"""

    decision: Decision
    comment: Optional[str] = None
    rejection_reason: Optional[str] = None


class UpdateRecordRequest(_Request):
    """Correction of a pending record for PATCH /v1/finance/{kind}/{record_id}; status is not editable"""

    amount_cents: Optional[int] = Field(None, gt=0)
    transaction_date: Optional[date] = None
    category: Optional[str] = Field(None, min_length=1)
    proof_url: Optional[str] = None
    notes: Optional[str] = None
    subcategory: Optional[str] = None
    payment_mode: Optional[str] = None
    vendor_id: Optional[str] = None
    partner_id: Optional[str] = None


class FinancialRecordResponse(_Response):
    id: str
    kind: RecordKind
    amount_cents: int
    transaction_date: date
    category: str
    status: RecordStatus
    submitter_id: str
    proof_url: Optional[str] = None
    notes: Optional[str] = None
    approver_id: Optional[str] = None
    approval_comment: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None
    subcategory: Optional[str] = None
    payment_mode: Optional[str] = None
    vendor_id: Optional[str] = None
    partner_id: Optional[str] = None


class FinancialRecordList(BaseModel):
    kind: RecordKind
    records: List[FinancialRecordResponse]


class ProofUploadResponse(BaseModel):
    url: str
    path: str


# Products

class CreateProductRequest(_Request):
    """Request body for POST /v1/products"""

    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    priority: Priority = Priority.MEDIUM
    product_type: Optional[str] = None
    description: Optional[str] = None
    target_launch_date: Optional[date] = None
    assigned_partners: List[str] = Field(default_factory=list)


class AdvanceRequest(_Request):
    """Request body for POST /v1/products/{product_id}/advance"""

    confirm_launch: bool = Field(False, description="Required when the next stage is 'launched'")


class UpdateProductRequest(_Request):
    """Administrative override for PATCH /v1/products/{product_id}; bypasses the pipeline"""

    name: Optional[str] = None
    category: Optional[str] = None
    product_type: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None
    current_stage: Optional[Stage] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    target_launch_date: Optional[date] = None
    assigned_partners: Optional[List[str]] = None


class ProductResponse(_Response):
    id: str
    name: str
    category: str
    priority: Priority
    current_stage: Stage
    progress: int
    stage_entered_at: datetime
    creator_id: str
    assigned_partners: List[str]
    product_type: Optional[str] = None
    description: Optional[str] = None
    target_launch_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductList(BaseModel):
    products: List[ProductResponse]


class StageHistoryItem(_Response):
    stage: Stage
    entered_at: datetime
    exited_at: Optional[datetime] = None
    moved_by: Optional[str] = None
    notes: Optional[str] = None


class StageHistoryResponse(BaseModel):
    product_id: str
    entries: List[StageHistoryItem]


# Activity

class ActivityItem(_Response):
    user_id: str
    activity_type: str
    description: str
    created_at: Optional[datetime] = None


class ActivityResponse(BaseModel):
    activity: List[ActivityItem]


# Accounts

class SignUpRequest(_Request):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None


class SignInRequest(_Request):
    email: str
    password: str


class UserProfileResponse(_Response):
    id: str
    email: str
    name: str
    role: Role
    approval_status: RecordStatus
    phone: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None


class UserList(BaseModel):
    users: List[UserProfileResponse]


class SessionResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    profile: UserProfileResponse


class AccountDecisionRequest(_Request):
    decision: Decision
    rejection_reason: Optional[str] = None


# Vendors

class CreateVendorRequest(_Request):
    """Request body for POST /v1/vendors"""

    name: str = Field(..., min_length=1)
    category: str = "Raw Materials"
    products: Optional[str] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    alternate_phone: Optional[str] = None
    address: Optional[str] = None
    gst_number: Optional[str] = None
    website: Optional[str] = None
    payment_terms: str = "30 days"
    bank_details: Dict[str, Any] = Field(default_factory=dict)
    certifications: List[str] = Field(default_factory=list)
    current_rating: int = Field(3, ge=1, le=5)
    notes: Optional[str] = None


class UpdateVendorRequest(_Request):
    """Partial update for PATCH /v1/vendors/{vendor_id}"""

    name: Optional[str] = None
    category: Optional[str] = None
    products: Optional[str] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    alternate_phone: Optional[str] = None
    address: Optional[str] = None
    gst_number: Optional[str] = None
    website: Optional[str] = None
    payment_terms: Optional[str] = None
    bank_details: Optional[Dict[str, Any]] = None
    certifications: Optional[List[str]] = None
    current_rating: Optional[int] = Field(None, ge=1, le=5)
    notes: Optional[str] = None


class VendorResponse(_Response):
    id: str
    name: str
    category: str
    payment_terms: str
    current_rating: int
    bank_details: Dict[str, Any]
    certifications: List[str]
    products: Optional[str] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    alternate_phone: Optional[str] = None
    address: Optional[str] = None
    gst_number: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class VendorList(BaseModel):
    vendors: List[VendorResponse]
