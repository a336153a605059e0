"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class RecordKind(str, Enum):
    EXPENSE = "expense"
    INVESTMENT = "investment"


class RecordStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class Role(str, Enum):
    ADMIN = "admin"
    PARTNER = "partner"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Stage(str, Enum):
    """Product development stages, in pipeline order"""

    IDEA = "idea"
    RESEARCH = "research"
    FORMULA = "formula"
    TESTING = "testing"
    PACKAGING = "packaging"
    PRINTING = "printing"
    PRODUCTION = "production"
    READY = "ready"
    LAUNCHED = "launched"


@dataclass
class Actor:
    """Authenticated user acting on the system"""

    user_id: str
    name: str
    role: Role = Role.PARTNER
    approval_status: RecordStatus = RecordStatus.APPROVED

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass
class Identity:
    """Account as known to the identity provider"""

    user_id: str
    email: Optional[str] = None


@dataclass
class AuthSession:
    """Signed-in session issued by the identity provider"""

    access_token: str
    identity: Identity
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


@dataclass
class UserProfile:
    """Application profile layered on top of an identity provider account"""

    id: str
    email: str
    name: str
    role: Role = Role.PARTNER
    approval_status: RecordStatus = RecordStatus.PENDING
    phone: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_actor(self) -> Actor:
        return Actor(user_id=self.id, name=self.name, role=self.role, approval_status=self.approval_status)


@dataclass
class FinancialRecord:
    """Expense or investment claim subject to approval"""

    id: str
    kind: RecordKind
    amount_cents: int
    transaction_date: date
    category: str  # expense category slug, or investment purpose
    submitter_id: str
    status: RecordStatus = RecordStatus.PENDING
    proof_url: Optional[str] = None
    notes: Optional[str] = None
    approver_id: Optional[str] = None
    approval_comment: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None
    # Expense-only
    subcategory: Optional[str] = None
    payment_mode: Optional[str] = None
    vendor_id: Optional[str] = None
    # Investment-only
    partner_id: Optional[str] = None


@dataclass
class Product:
    """Item moving through the development pipeline"""

    id: str
    name: str
    category: str
    priority: Priority
    current_stage: Stage
    progress: int
    stage_entered_at: datetime
    creator_id: str
    assigned_partners: List[str] = field(default_factory=list)
    product_type: Optional[str] = None
    description: Optional[str] = None
    target_launch_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class StageHistoryEntry:
    """One interval a product spent in one stage"""

    id: int
    product_id: str
    stage: Stage
    entered_at: datetime
    moved_by: Optional[str]
    exited_at: Optional[datetime] = None  # None while current
    notes: Optional[str] = None


@dataclass
class ActivityEntry:
    """Human-readable activity feed item"""

    user_id: str
    activity_type: str
    description: str
    created_at: Optional[datetime] = None


@dataclass
class Vendor:
    """Supplier that expenses can be attributed to"""

    id: str
    name: str
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
    bank_details: Dict[str, Any] = field(default_factory=dict)
    certifications: List[str] = field(default_factory=list)
    current_rating: int = 3  # 1-5 stars
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
