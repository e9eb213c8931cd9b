from __future__ import annotations

from ..extensions import db
from bizzflow.time_utils import to_utc_z


REGISTRATION_TYPES = ("pan", "vat")
VENDOR_CATEGORIES = ("supplier", "manufacturer", "distributor", "service-provider")

VENDOR_STATUS_ACTIVE = "active"
VENDOR_STATUS_INACTIVE = "inactive"
VENDOR_STATUS_BLACKLISTED = "blacklisted"
VENDOR_STATUS_DELETED = "deleted"
VENDOR_STATUSES = (
    VENDOR_STATUS_ACTIVE,
    VENDOR_STATUS_INACTIVE,
    VENDOR_STATUS_BLACKLISTED,
    VENDOR_STATUS_DELETED,
)


class Vendor(db.Model):
    """
    Supplier of goods or services referenced by purchase orders.

    REGISTRATION: A vendor is registered either by PAN or by VAT number.
    Exactly one of pan_number / vat_number is set, matching
    registration_type. Each number is unique among vendors that carry it.

    LIFECYCLE:
    - active / inactive / blacklisted are set by regular updates
    - deleted is the trash state (soft delete), reversible by restore
    - permanent delete only from the trash, and only without purchase orders
    """
    __tablename__ = "vendors"
    __table_args__ = (
        db.UniqueConstraint("pan_number", name="uq_vendors_pan_number"),
        db.UniqueConstraint("vat_number", name="uq_vendors_vat_number"),
        db.Index("ix_vendors_name_email", "name", "email"),
        db.Index("ix_vendors_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    # Unique among non-deleted vendors; enforced in vendor_service
    email = db.Column(db.String(255), nullable=False, index=True)
    phone = db.Column(db.String(64), nullable=False)
    address = db.Column(db.Text, nullable=False)

    registration_type = db.Column(db.String(8), nullable=False, default="pan")
    pan_number = db.Column(db.String(64), nullable=True)
    vat_number = db.Column(db.String(64), nullable=True)

    category = db.Column(db.String(32), nullable=False, default="supplier")

    # Bank details
    bank_account_name = db.Column(db.String(255), nullable=False)
    bank_account_number = db.Column(db.String(64), nullable=False)
    bank_name = db.Column(db.String(255), nullable=False)
    bank_branch = db.Column(db.String(255), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=VENDOR_STATUS_ACTIVE)

    # Audit fields
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    deleted_by = db.relationship("User", foreign_keys=[deleted_by_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Vendor id={self.id} name={self.name!r} status={self.status}>"

    @property
    def is_deleted(self) -> bool:
        return self.status == VENDOR_STATUS_DELETED

    def bank_details(self) -> dict:
        return {
            "account_name": self.bank_account_name,
            "account_number": self.bank_account_number,
            "bank_name": self.bank_name,
            "branch": self.bank_branch,
        }

    def to_summary(self) -> dict:
        """Vendor fields inlined into purchase order listings."""
        return {"id": self.id, "name": self.name, "email": self.email}

    def to_contact(self) -> dict:
        """Vendor fields inlined into a single purchase order."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "bank_details": self.bank_details(),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "registration_type": self.registration_type,
            "pan_number": self.pan_number,
            "vat_number": self.vat_number,
            "category": self.category,
            "bank_details": self.bank_details(),
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "deleted_at": to_utc_z(self.deleted_at),
            "deleted_by_user_id": self.deleted_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
