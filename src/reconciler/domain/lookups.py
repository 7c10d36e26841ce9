"""Category, vendor and staff lookup service."""

from typing import Optional
from reconciler.database.base import Database
from reconciler.domain.entities import Category, Vendor, Staff
from reconciler.domain.errors import (
    NotFoundError,
    ValidationError,
    category_not_found,
    require_owner,
    staff_not_found,
    vendor_not_found,
)


class LookupService:
    """Service for managing the lookup tables rules and matches refer to."""

    def __init__(self, db: Database):
        """Initialize lookup service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_category(self, owner_id: str, name: str) -> int:
        """Create a category.

        Raises:
            ValidationError: If the name is empty
        """
        require_owner(owner_id)
        return self.db.create_category(owner_id, _require_name(name))

    def get_category(self, owner_id: str, category_id: int) -> Optional[Category]:
        require_owner(owner_id)
        return self.db.get_category(owner_id, category_id)

    def list_categories(self, owner_id: str) -> list[Category]:
        require_owner(owner_id)
        return self.db.list_categories(owner_id)

    def create_vendor(self, owner_id: str, name: str) -> int:
        """Create a vendor.

        Raises:
            ValidationError: If the name is empty
        """
        require_owner(owner_id)
        return self.db.create_vendor(owner_id, _require_name(name))

    def list_vendors(self, owner_id: str) -> list[Vendor]:
        require_owner(owner_id)
        return self.db.list_vendors(owner_id)

    def create_staff(self, owner_id: str, name: str, role: str = "staff") -> int:
        """Create a staff member.

        Raises:
            ValidationError: If the name is empty
        """
        require_owner(owner_id)
        return self.db.create_staff(owner_id, _require_name(name), role=role or "staff")

    def list_staff(self, owner_id: str) -> list[Staff]:
        require_owner(owner_id)
        return self.db.list_staff(owner_id)

    def verify_references(
        self,
        owner_id: str,
        category_id: Optional[int] = None,
        vendor_id: Optional[int] = None,
        staff_id: Optional[int] = None,
    ) -> None:
        """Check that each given lookup ID exists for the owner.

        Raises:
            NotFoundError: If any referenced row is missing
        """
        if category_id is not None and self.db.get_category(owner_id, category_id) is None:
            raise NotFoundError(category_not_found(category_id))
        if vendor_id is not None and self.db.get_vendor(owner_id, vendor_id) is None:
            raise NotFoundError(vendor_not_found(vendor_id))
        if staff_id is not None and self.db.get_staff(owner_id, staff_id) is None:
            raise NotFoundError(staff_not_found(staff_id))


def _require_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name cannot be empty")
    return name
