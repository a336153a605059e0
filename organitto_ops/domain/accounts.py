"""Account registration and admin approval of new user profiles"""

from datetime import datetime
from typing import TYPE_CHECKING, Callable, List, Optional

from organitto_ops.domain.exceptions import (
    AuthorizationError,
    DuplicateRecord,
    InvalidStateTransition,
    MissingRejectionReason,
    RecordNotFound,
    ValidationError,
)
from organitto_ops.domain.models import Actor, Decision, RecordStatus, Role, UserProfile
from organitto_ops.utils.date_utils import utc_now

if TYPE_CHECKING:
    from organitto_ops.infrastructure.database.repositories import RecordStore


APPROVED_MESSAGE = "Your Organitto account has been approved! You can now login."


class AccountApprovals:
    """Profiles start pending; an admin approves or rejects them exactly once"""

    def __init__(self, store: "RecordStore", clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def register(
        self,
        identity_id: str,
        email: str,
        name: str,
        phone: Optional[str] = None,
        role: Role = Role.PARTNER,
    ) -> UserProfile:
        if not email or not name or not name.strip():
            raise ValidationError("Email and name are required")
        fields = {
            "id": identity_id,
            "email": email,
            "name": name.strip(),
            "phone": phone or None,
            "role": Role(role),
            "approval_status": RecordStatus.PENDING,
            "created_at": self.clock(),
        }
        with self.store.transaction():
            if self.store.users.get(identity_id) is not None:
                raise DuplicateRecord(f"A profile already exists for {identity_id}")
            return self.store.users.insert(fields)

    def list_by_status(self, status: RecordStatus, actor: Actor) -> List[UserProfile]:
        if not actor.is_admin:
            raise AuthorizationError(f"User {actor.user_id} may not review accounts")
        with self.store.transaction():
            return self.store.users.list_by_status(RecordStatus(status))

    def decide(
        self,
        user_id: str,
        decision: Decision,
        actor: Actor,
        rejection_reason: Optional[str] = None,
    ) -> UserProfile:
        """Approve or reject a pending registration and notify the user"""
        decision = Decision(decision)
        if not actor.is_admin:
            raise AuthorizationError(f"User {actor.user_id} may not review accounts")
        if decision == Decision.REJECT and not (rejection_reason or "").strip():
            raise MissingRejectionReason()

        with self.store.transaction():
            profile = self.store.users.get(user_id)
            if profile is None:
                raise RecordNotFound("user", user_id)
            if profile.approval_status != RecordStatus.PENDING:
                raise InvalidStateTransition(user_id, profile.approval_status.value, decision.value)

            if decision == Decision.APPROVE:
                patch = {
                    "approval_status": RecordStatus.APPROVED,
                    "approved_by": actor.user_id,
                    "approved_at": self.clock(),
                }
                note = ("account_approved", "Account Approved", APPROVED_MESSAGE)
            else:
                reason = rejection_reason.strip()
                patch = {
                    "approval_status": RecordStatus.REJECTED,
                    "approved_by": actor.user_id,
                    "approved_at": self.clock(),
                    "rejection_reason": reason,
                }
                note = (
                    "account_rejected",
                    "Registration Not Approved",
                    f"Your registration was not approved. Reason: {reason}",
                )

            if not self.store.users.update_if_pending(user_id, patch):
                raise InvalidStateTransition(user_id, "decided", decision.value)
            self.store.notifications.append(user_id, *note)
            return self.store.users.get(user_id)
