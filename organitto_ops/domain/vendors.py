"""Vendor directory - suppliers that expenses can be attributed to"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from organitto_ops.domain.exceptions import AuthorizationError, RecordNotFound, ValidationError
from organitto_ops.domain.models import Actor, Vendor
from organitto_ops.utils.date_utils import utc_now

if TYPE_CHECKING:
    from organitto_ops.infrastructure.database.repositories import RecordStore


VENDOR_CATEGORIES = (
    "Raw Materials",
    "Packaging",
    "Printing",
    "Logistics",
    "Lab Testing",
    "Equipment",
    "Services",
    "Other",
)

VENDOR_FIELDS = frozenset({
    "name",
    "category",
    "products",
    "contact_person",
    "phone",
    "email",
    "alternate_phone",
    "address",
    "gst_number",
    "website",
    "payment_terms",
    "bank_details",
    "certifications",
    "current_rating",
    "notes",
})

# Columns that always hold a value; the rest accept empty as "not known"
_REQUIRED = ("name", "category", "payment_terms")


def validate_vendor(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check and normalize vendor fields for a create or an update.

    Text fields are stripped and empty optional text becomes None. Only the
    fields present are checked, so the same rules serve a partial update.
    """
    unknown = set(fields) - VENDOR_FIELDS
    if unknown:
        raise ValidationError(f"Unknown vendor fields: {', '.join(sorted(unknown))}")

    clean: Dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, str):
            value = value.strip() or None
        if key in _REQUIRED and not value:
            raise ValidationError(f"Vendor {key.replace('_', ' ')} is required")
        clean[key] = value

    if "current_rating" in clean:
        rating = clean["current_rating"]
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be a whole number from 1 to 5")
    if "bank_details" in clean:
        if clean["bank_details"] is None:
            clean["bank_details"] = {}
        elif not isinstance(clean["bank_details"], dict):
            raise ValidationError("Bank details must be an object")
    if "certifications" in clean:
        certifications = clean["certifications"] or []
        clean["certifications"] = [c.strip() for c in certifications if c and c.strip()]
    return clean


class VendorDirectory:
    """
    Maintains the supplier directory.

    Any approved user may add or edit a vendor. Removing one is admin only
    and detaches it from the expenses that referenced it.
    """

    def __init__(self, store: "RecordStore", clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def create(self, fields: Dict[str, Any], actor: Actor) -> Vendor:
        if not fields.get("name"):
            raise ValidationError("Vendor name is required")
        clean = validate_vendor(fields)
        clean.update(created_by=actor.user_id, created_at=self.clock())

        with self.store.transaction():
            vendor = self.store.vendors.insert(clean)
            self.store.activity.append(actor.user_id, "vendor_added", f"{actor.name} added vendor: {vendor.name}")
        return vendor

    def list(self, category: Optional[str] = None) -> List[Vendor]:
        with self.store.transaction():
            return self.store.vendors.list(category=category)

    def get(self, vendor_id: str) -> Vendor:
        with self.store.transaction():
            vendor = self.store.vendors.get(vendor_id)
        if vendor is None:
            raise RecordNotFound("vendor", vendor_id)
        return vendor

    def update(self, vendor_id: str, patch: Dict[str, Any], actor: Actor) -> Vendor:
        clean = validate_vendor(patch)
        with self.store.transaction():
            if self.store.vendors.get(vendor_id) is None:
                raise RecordNotFound("vendor", vendor_id)
            if clean:
                clean["updated_at"] = self.clock()
                self.store.vendors.update(vendor_id, clean)
            vendor = self.store.vendors.get(vendor_id)
            self.store.activity.append(actor.user_id, "vendor_updated", f"{actor.name} updated vendor: {vendor.name}")
            return vendor

    def delete(self, vendor_id: str, actor: Actor) -> int:
        """
        Remove a vendor. Admin only.

        Returns:
            Number of expenses whose vendor reference was cleared
        """
        if not actor.is_admin:
            raise AuthorizationError(f"User {actor.user_id} may not delete vendors")
        with self.store.transaction():
            vendor = self.store.vendors.get(vendor_id)
            if vendor is None:
                raise RecordNotFound("vendor", vendor_id)
            detached = self.store.vendors.delete(vendor_id)
            self.store.activity.append(actor.user_id, "vendor_deleted", f"{actor.name} deleted vendor: {vendor.name}")
            return detached
