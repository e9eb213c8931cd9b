# Overview: Service-layer operations for vendors; encapsulates business logic and database work.

"""
Vendor Service

WHY: Every purchase order is issued to exactly one vendor. Vendors carry
the registration (PAN or VAT) and bank details needed to pay them.

UNIQUENESS:
- email is unique among vendors that are not in the trash
- pan_number / vat_number are unique among all vendors carrying one

TRASH LIFECYCLE:
    active|inactive|blacklisted --soft delete--> deleted --restore--> active
    deleted --permanent delete--> (removed)

A vendor can only go to the trash when none of its purchase orders is
still open (status outside completed / cancelled / deleted).
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Vendor, PurchaseOrder, User
from ..models.vendors import (
    REGISTRATION_TYPES,
    VENDOR_CATEGORIES,
    VENDOR_STATUS_ACTIVE,
    VENDOR_STATUS_INACTIVE,
    VENDOR_STATUS_BLACKLISTED,
    VENDOR_STATUS_DELETED,
)
from ..models.purchasing import PO_STATUS_COMPLETED, PO_STATUS_CANCELLED, PO_STATUS_DELETED
from ..errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from ..validation import FieldErrors, is_valid_email, normalize_str
from .concurrency import lock_for_update, run_with_retry
from bizzflow.time_utils import utcnow


logger = logging.getLogger(__name__)

# Statuses a client may set directly; "deleted" only through soft delete
ASSIGNABLE_STATUSES = (VENDOR_STATUS_ACTIVE, VENDOR_STATUS_INACTIVE, VENDOR_STATUS_BLACKLISTED)

# Purchase order statuses that do not block moving a vendor to the trash
CLOSED_PO_STATUSES = (PO_STATUS_COMPLETED, PO_STATUS_CANCELLED, PO_STATUS_DELETED)

BANK_FIELDS = {
    "account_name": ("bank_account_name", "Account name"),
    "account_number": ("bank_account_number", "Account number"),
    "bank_name": ("bank_name", "Bank name"),
    "branch": ("bank_branch", "Branch name"),
}

_PLAIN_FIELDS = ("name", "email", "phone", "address", "registration_type",
                 "pan_number", "vat_number", "category", "status")


def _state_of(vendor: Vendor) -> dict:
    """Current vendor values in request-payload shape."""
    state = {field: getattr(vendor, field) for field in _PLAIN_FIELDS}
    state["bank_details"] = vendor.bank_details()
    return state


def _merge(base: dict, data: dict) -> dict:
    merged = dict(base)
    for field in _PLAIN_FIELDS:
        if field in data:
            merged[field] = data[field]
    if "bank_details" in data:
        bank = data["bank_details"]
        if isinstance(bank, dict):
            merged_bank = dict(base.get("bank_details") or {})
            merged_bank.update(bank)
            merged["bank_details"] = merged_bank
        else:
            merged["bank_details"] = bank
    return merged


def _clean_fields(state: dict) -> dict:
    """
    Normalize and validate a complete vendor state.

    Trims every string, lower-cases the email, and keeps only the
    registration number that matches registration_type.

    Returns:
        Column values ready to assign to a Vendor

    Raises:
        ValidationError: with one entry per offending field
    """
    errors = FieldErrors()

    name = errors.required_str(state, "name", label="Name")
    email = normalize_str(state.get("email"))
    email = email.lower() if email else None
    if not is_valid_email(email):
        errors.add("email", "Please include a valid email")
    phone = errors.required_str(state, "phone", label="Phone number")
    address = errors.required_str(state, "address", label="Address")

    registration_type = normalize_str(state.get("registration_type")) or "pan"
    registration_type = registration_type.lower()
    errors.choice(registration_type, "registration_type", REGISTRATION_TYPES)

    pan_number = normalize_str(state.get("pan_number"))
    vat_number = normalize_str(state.get("vat_number"))
    if registration_type == "pan":
        vat_number = None
        if not pan_number:
            errors.add("pan_number", "PAN number is required for PAN registration")
    elif registration_type == "vat":
        pan_number = None
        if not vat_number:
            errors.add("vat_number", "VAT number is required for VAT registration")

    category = (normalize_str(state.get("category")) or "supplier").lower()
    errors.choice(category, "category", VENDOR_CATEGORIES)

    status = (normalize_str(state.get("status")) or VENDOR_STATUS_ACTIVE).lower()
    errors.choice(status, "status", ASSIGNABLE_STATUSES)

    fields = {
        "name": name,
        "email": email,
        "phone": phone,
        "address": address,
        "registration_type": registration_type,
        "pan_number": pan_number,
        "vat_number": vat_number,
        "category": category,
        "status": status,
    }

    bank = state.get("bank_details")
    if not isinstance(bank, dict):
        errors.add("bank_details", "Bank details are required")
        bank = {}
    for key, (column, label) in BANK_FIELDS.items():
        value = normalize_str(bank.get(key))
        if not value:
            errors.add(f"bank_details.{key}", f"{label} is required")
        fields[column] = value

    errors.raise_if_any()
    return fields


def _check_uniqueness(fields: dict, *, exclude_id: int | None = None) -> None:
    """
    Raise ConflictError if email / PAN / VAT is already taken by another vendor.
    """
    def _others(query):
        if exclude_id is not None:
            query = query.filter(Vendor.id != exclude_id)
        return query

    existing = _others(db.session.query(Vendor).filter(
        Vendor.email == fields["email"],
        Vendor.status != VENDOR_STATUS_DELETED,
    )).first()
    if existing:
        raise ConflictError(f"Email '{fields['email']}' is already registered to another vendor")

    if fields.get("pan_number"):
        existing = _others(db.session.query(Vendor).filter(
            Vendor.pan_number == fields["pan_number"],
        )).first()
        if existing:
            raise ConflictError("PAN number already registered")

    if fields.get("vat_number"):
        existing = _others(db.session.query(Vendor).filter(
            Vendor.vat_number == fields["vat_number"],
        )).first()
        if existing:
            raise ConflictError("VAT number already registered")


def _commit_registration() -> None:
    """Commit, turning a lost PAN/VAT unique race into ConflictError."""
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        message = str(exc.orig)
        if "pan_number" in message:
            raise ConflictError("PAN number already registered")
        if "vat_number" in message:
            raise ConflictError("VAT number already registered")
        raise


def _require_actor(actor: User | None) -> User:
    if actor is None:
        raise ValidationError("An authenticated user is required")
    return actor


def get_vendor(vendor_id: int) -> Vendor:
    """
    Get a vendor by ID.

    Raises:
        NotFoundError: If vendor not found
    """
    vendor = db.session.get(Vendor, vendor_id)
    if not vendor:
        raise NotFoundError("Vendor not found")
    return vendor


def get_vendor_for_update(vendor_id: int) -> Vendor:
    """
    Load a vendor with SELECT ... FOR UPDATE.

    Purchase order creation and vendor soft delete both take this lock, so
    the open-order check of a soft delete cannot miss an order being created.
    """
    vendor = (
        lock_for_update(db.session.query(Vendor).filter_by(id=vendor_id))
        .populate_existing()
        .first()
    )
    if not vendor:
        raise NotFoundError("Vendor not found")
    return vendor


def list_vendors(
    *,
    status: str | None = None,
    search: str | None = None,
    include_deleted: bool = False,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Vendor], int]:
    """
    List vendors, newest first.

    Vendors in the trash are hidden unless include_deleted is set or
    status="deleted" is requested explicitly.

    Returns:
        Tuple of (list of Vendor objects, total count)
    """
    query = db.session.query(Vendor)

    if status:
        query = query.filter(Vendor.status == status)
    elif not include_deleted:
        query = query.filter(Vendor.status != VENDOR_STATUS_DELETED)

    if search:
        search_term = f"%{search}%"
        query = query.filter(
            db.or_(
                Vendor.name.ilike(search_term),
                Vendor.email.ilike(search_term),
                Vendor.pan_number.ilike(search_term),
                Vendor.vat_number.ilike(search_term),
            )
        )

    total = query.count()
    query = query.order_by(Vendor.created_at.desc(), Vendor.id.desc())
    return query.offset(offset).limit(limit).all(), total


def create_vendor(data: dict, *, actor: User) -> Vendor:
    """
    Create a new vendor.

    Args:
        data: Vendor fields (see Vendor model); bank_details is a nested dict
        actor: User creating the vendor

    Raises:
        ValidationError: missing or malformed fields
        ConflictError: duplicate email, PAN or VAT number
    """
    actor = _require_actor(actor)
    fields = _clean_fields(_merge({}, data or {}))
    _check_uniqueness(fields)

    vendor = Vendor(created_by_user_id=actor.id, **fields)
    db.session.add(vendor)
    _commit_registration()

    logger.info("Vendor %s created by user %s", vendor.id, actor.id)
    return vendor


def update_vendor(vendor_id: int, data: dict, *, actor: User) -> Vendor:
    """
    Update an existing vendor (partial update).

    Raises:
        NotFoundError: If vendor not found
        InvalidStateError: If vendor is in the trash
        ValidationError: If the resulting vendor is invalid
        ConflictError: duplicate email, PAN or VAT number on another vendor
    """
    _require_actor(actor)

    def _op() -> Vendor:
        vendor = get_vendor(vendor_id)
        if vendor.is_deleted:
            raise InvalidStateError("Vendor is in trash; restore it before editing")

        fields = _clean_fields(_merge(_state_of(vendor), data or {}))
        _check_uniqueness(fields, exclude_id=vendor.id)

        for column, value in fields.items():
            setattr(vendor, column, value)
        _commit_registration()
        return vendor

    vendor = run_with_retry(_op)
    logger.info("Vendor %s updated by user %s", vendor.id, actor.id)
    return vendor


def count_open_purchase_orders(vendor_id: int) -> int:
    return db.session.query(PurchaseOrder).filter(
        PurchaseOrder.vendor_id == vendor_id,
        PurchaseOrder.status.notin_(CLOSED_PO_STATUSES),
    ).count()


def assert_vendor_deletable(vendor: Vendor) -> None:
    """
    Precondition for moving a vendor to the trash.

    Raises:
        InvalidStateError: if any purchase order for this vendor is still open
    """
    open_count = count_open_purchase_orders(vendor.id)
    if open_count:
        raise InvalidStateError(
            f"Cannot delete vendor with {open_count} open purchase order(s)"
        )


def soft_delete_vendor(vendor_id: int, *, actor: User) -> Vendor:
    """
    Move a vendor to the trash.

    Raises:
        NotFoundError: If vendor not found
        InvalidStateError: If already deleted or purchase orders are open
    """
    actor = _require_actor(actor)

    def _op() -> Vendor:
        vendor = get_vendor_for_update(vendor_id)
        if vendor.is_deleted:
            raise InvalidStateError("Vendor is already in trash")
        assert_vendor_deletable(vendor)

        vendor.status = VENDOR_STATUS_DELETED
        vendor.deleted_at = utcnow()
        vendor.deleted_by_user_id = actor.id
        db.session.commit()
        return vendor

    vendor = run_with_retry(_op)
    logger.info("Vendor %s moved to trash by user %s", vendor.id, actor.id)
    return vendor


def restore_vendor(vendor_id: int) -> Vendor:
    """
    Restore a vendor from the trash (status back to active).

    Raises:
        NotFoundError: If vendor not found
        InvalidStateError: If vendor is not in the trash
        ConflictError: If its email was taken by another vendor meanwhile
    """
    def _op() -> Vendor:
        vendor = get_vendor(vendor_id)
        if not vendor.is_deleted:
            raise InvalidStateError("Vendor is not in trash")

        taken = db.session.query(Vendor).filter(
            Vendor.email == vendor.email,
            Vendor.id != vendor.id,
            Vendor.status != VENDOR_STATUS_DELETED,
        ).first()
        if taken:
            raise ConflictError(f"Email '{vendor.email}' is already registered to another vendor")

        vendor.status = VENDOR_STATUS_ACTIVE
        vendor.deleted_at = None
        vendor.deleted_by_user_id = None
        db.session.commit()
        return vendor

    vendor = run_with_retry(_op)
    logger.info("Vendor %s restored", vendor.id)
    return vendor


def permanent_delete_vendor(vendor_id: int) -> None:
    """
    Remove a vendor irrevocably. Only vendors in the trash qualify.

    Raises:
        NotFoundError: If vendor not found
        InvalidStateError: If vendor is not in the trash
        ConflictError: If any purchase order still references the vendor
    """
    vendor = get_vendor(vendor_id)
    if not vendor.is_deleted:
        raise InvalidStateError("Vendor must be in trash before permanent deletion")

    referenced = db.session.query(PurchaseOrder).filter_by(vendor_id=vendor.id).count()
    if referenced:
        raise ConflictError("Cannot delete vendor with existing purchase orders")

    db.session.delete(vendor)
    db.session.commit()
    logger.info("Vendor %s permanently deleted", vendor_id)


def list_vendor_purchase_orders(vendor_id: int) -> list[PurchaseOrder]:
    """All purchase orders for a vendor, newest first (trash included)."""
    get_vendor(vendor_id)
    return (
        db.session.query(PurchaseOrder)
        .filter(PurchaseOrder.vendor_id == vendor_id)
        .order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
        .all()
    )
