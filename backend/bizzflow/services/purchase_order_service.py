# Overview: Service-layer operations for purchase orders; encapsulates business logic and database work.

"""
BizzFlow Purchase Order Lifecycle Service

================================================================================
PURPOSE: Create, edit, approve, pay and retire purchase orders
================================================================================

STATE MACHINE:
    draft    --submit-->              pending
    pending  --approve/reject/cancel--> approved / rejected / cancelled
    approved --complete (fully paid)--> completed
    draft|rejected --soft delete-->   deleted
    deleted  --restore-->             draft
    deleted  --permanent delete-->    (removed)

RULES:
1. Only draft / pending orders are editable
2. approve / reject / cancel require a note and append to approval history;
   a decided order cannot be decided again
3. Payments are accepted only while approved, and the ledger total never
   exceeds the order total
4. Totals and payment status are recomputed before every write
   (see po_calculations); client-supplied totals are ignored

CONCURRENCY:
Every mutation loads the order with SELECT ... FOR UPDATE and relies on the
version_id column. The body runs under run_with_retry, so a stale write is
rolled back and re-validated against fresh state. Creation locks the vendor
row, the same lock vendor soft delete takes before counting open orders.

ORDER NUMBERS:
Allocated from the "purchaseOrder" counter before the order row is written.
If that write fails the number is lost; the gap is accepted.
================================================================================
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderApproval,
    PurchaseOrderPayment,
    PurchaseOrderAttachment,
    User,
    Vendor,
)
from ..models.purchasing import (
    PAYMENT_METHODS,
    PO_STATUS_DRAFT,
    PO_STATUS_PENDING,
    PO_STATUS_APPROVED,
    PO_STATUS_REJECTED,
    PO_STATUS_CANCELLED,
    PO_STATUS_COMPLETED,
    PO_STATUS_DELETED,
    PAYMENT_STATUS_PAID,
)
from ..errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from ..validation import (
    MAX_AMOUNT_CENTS,
    MAX_QUANTITY,
    FieldErrors,
    coerce_cents,
    coerce_int,
    normalize_str,
)
from . import sequence_service, vendor_service
from .concurrency import lock_for_update, run_with_retry
from .po_calculations import (
    LineInput,
    OrderTotals,
    compute_totals,
    derive_payment_status,
    remaining_balance,
    sum_payments,
)
from bizzflow.time_utils import parse_iso_date, parse_iso_datetime, utcnow


logger = logging.getLogger(__name__)

INITIAL_STATUSES = (PO_STATUS_DRAFT, PO_STATUS_PENDING)
EDITABLE_STATUSES = (PO_STATUS_DRAFT, PO_STATUS_PENDING)
DECISION_STATUSES = (PO_STATUS_APPROVED, PO_STATUS_REJECTED, PO_STATUS_CANCELLED)
DELETABLE_STATUSES = (PO_STATUS_DRAFT, PO_STATUS_REJECTED)


# =============================================================================
# INPUT PARSING
# =============================================================================

def _parse_items(raw, errors: FieldErrors) -> list[LineInput]:
    """
    Validate the items array of a create/update payload.

    Each item needs a description, quantity >= 1 and unit_price_cents >= 0.
    """
    if not isinstance(raw, list) or not raw:
        errors.add("items", "Purchase order must have at least one item")
        return []

    items = []
    for index, item in enumerate(raw):
        prefix = f"items[{index}]"
        if not isinstance(item, dict):
            errors.add(prefix, "Item must be an object")
            continue

        description = normalize_str(item.get("description"))
        if not description:
            errors.add(f"{prefix}.description", "Item description is required")

        quantity = errors.capture(coerce_int, item.get("quantity"), f"{prefix}.quantity")
        if quantity is not None and quantity < 1:
            errors.add(f"{prefix}.quantity", "Quantity must be at least 1")
            quantity = None
        elif quantity is not None and quantity > MAX_QUANTITY:
            errors.add(f"{prefix}.quantity", f"Quantity cannot exceed {MAX_QUANTITY}")
            quantity = None

        unit_price = errors.capture(
            coerce_cents, item.get("unit_price_cents"), f"{prefix}.unit_price_cents", minimum=0
        )
        unit = normalize_str(item.get("unit")) or "piece"

        if description and quantity is not None and unit_price is not None:
            items.append(LineInput(
                description=description,
                quantity=quantity,
                unit_price_cents=unit_price,
                unit=unit,
            ))
    return items


def _parse_due_date(raw, errors: FieldErrors):
    try:
        due_date = parse_iso_date(raw)
    except (TypeError, ValueError):
        errors.add("due_date", "Valid due date is required")
        return None
    if due_date is None:
        errors.add("due_date", "Valid due date is required")
    return due_date


def _parse_attachments(raw, errors: FieldErrors) -> list[dict]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        errors.add("attachments", "Attachments must be a list")
        return []

    attachments = []
    for index, item in enumerate(raw):
        name = normalize_str(item.get("name")) if isinstance(item, dict) else None
        url = normalize_str(item.get("url")) if isinstance(item, dict) else None
        if not name or not url:
            errors.add(f"attachments[{index}]", "Attachment name and url are required")
            continue
        attachments.append({"name": name, "url": url, "content_type": normalize_str(item.get("type"))})
    return attachments


def _checked_totals(items: list[LineInput], tax_cents: int, discount_cents: int) -> OrderTotals:
    """
    Compute totals and range-check every stored amount.

    Runs before an order number is allocated, so an out-of-range order
    never consumes a sequence value.
    """
    totals = compute_totals(items, tax_cents=tax_cents, discount_cents=discount_cents)

    errors = FieldErrors()
    for index, amount in enumerate(totals.line_totals):
        if amount > MAX_AMOUNT_CENTS:
            errors.add(f"items[{index}].quantity", "Line total exceeds the maximum allowed amount")
    if totals.subtotal_cents > MAX_AMOUNT_CENTS:
        errors.add("items", "Subtotal exceeds the maximum allowed amount")
    if totals.total_cents > MAX_AMOUNT_CENTS:
        errors.add("total_cents", "Total exceeds the maximum allowed amount")
    if totals.total_cents < 0:
        errors.add("discount_cents", "Discount cannot exceed subtotal plus tax")
    errors.raise_if_any()
    return totals


# =============================================================================
# DERIVED FIELDS
# =============================================================================

def _apply_lines(po: PurchaseOrder, items: list[LineInput], totals: OrderTotals) -> None:
    po.lines = [
        PurchaseOrderLine(
            position=position,
            description=item.description,
            quantity=item.quantity,
            unit=item.unit,
            unit_price_cents=item.unit_price_cents,
            line_total_cents=line_total_cents,
        )
        for position, (item, line_total_cents) in enumerate(zip(items, totals.line_totals))
    ]
    po.subtotal_cents = totals.subtotal_cents
    po.tax_cents = totals.tax_cents
    po.discount_cents = totals.discount_cents
    po.total_cents = totals.total_cents


def _apply_attachments(po: PurchaseOrder, attachments: list[dict]) -> None:
    now = utcnow()
    po.attachments = [PurchaseOrderAttachment(uploaded_at=now, **a) for a in attachments]


def _refresh_payment_status(po: PurchaseOrder) -> None:
    po.amount_paid_cents = sum_payments(p.amount_cents for p in po.payments)
    po.payment_status = derive_payment_status(po.amount_paid_cents, po.total_cents)


# =============================================================================
# QUERIES
# =============================================================================

def _load_for_update(po_id: int) -> PurchaseOrder:
    po = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=po_id)).first()
    if not po:
        raise NotFoundError("Purchase order not found")
    return po


def get_purchase_order(po_id: int) -> PurchaseOrder:
    """
    Get a purchase order by ID.

    Raises:
        NotFoundError: If purchase order not found
    """
    po = db.session.get(PurchaseOrder, po_id)
    if not po:
        raise NotFoundError("Purchase order not found")
    return po


def list_purchase_orders(
    *,
    status: str | None = None,
    vendor_id: int | None = None,
    search: str | None = None,
    include_deleted: bool = False,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[PurchaseOrder], int]:
    """
    List purchase orders, newest first.

    Orders in the trash are hidden unless include_deleted is set or
    status="deleted" is requested.

    Returns:
        Tuple of (list of PurchaseOrder objects, total count)
    """
    query = db.session.query(PurchaseOrder)

    if status:
        query = query.filter(PurchaseOrder.status == status)
    elif not include_deleted:
        query = query.filter(PurchaseOrder.status != PO_STATUS_DELETED)

    if vendor_id is not None:
        query = query.filter(PurchaseOrder.vendor_id == vendor_id)

    if search:
        search_term = f"%{search}%"
        query = query.join(Vendor, PurchaseOrder.vendor_id == Vendor.id).filter(
            db.or_(
                PurchaseOrder.order_number.ilike(search_term),
                Vendor.name.ilike(search_term),
            )
        )

    total = query.count()
    query = query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
    return query.offset(offset).limit(limit).all(), total


def payment_summary(po: PurchaseOrder) -> dict:
    """Payment ledger with paid / remaining figures."""
    return {
        "purchase_order_id": po.id,
        "order_number": po.order_number,
        "total_cents": po.total_cents,
        "amount_paid_cents": po.amount_paid_cents,
        "remaining_cents": remaining_balance(po.total_cents, po.amount_paid_cents),
        "payment_status": po.payment_status,
        "payments": [p.to_dict() for p in po.payments],
    }


# =============================================================================
# LIFECYCLE OPERATIONS
# =============================================================================

def create_purchase_order(data: dict, *, actor: User) -> PurchaseOrder:
    """
    Create a purchase order in draft (or pending) status.

    Args:
        data: vendor_id, items[{description, quantity, unit_price_cents, unit?}],
              due_date, tax_cents?, discount_cents?, payment_terms?, notes?,
              attachments?, status?
        actor: User creating the order

    Raises:
        ValidationError: malformed items, due date, amounts or status
        NotFoundError: vendor does not exist
        InvalidStateError: vendor is in the trash
    """
    data = data or {}
    errors = FieldErrors()

    vendor_id = None
    if data.get("vendor_id") is None:
        errors.add("vendor_id", "Vendor is required")
    else:
        vendor_id = errors.capture(coerce_int, data.get("vendor_id"), "vendor_id")

    items = _parse_items(data.get("items"), errors)
    due_date = _parse_due_date(data.get("due_date"), errors)
    tax_cents = errors.capture(coerce_cents, data.get("tax_cents", 0), "tax_cents")
    discount_cents = errors.capture(coerce_cents, data.get("discount_cents", 0), "discount_cents")
    status = errors.choice(data.get("status") or PO_STATUS_DRAFT, "status", INITIAL_STATUSES)
    attachments = _parse_attachments(data.get("attachments"), errors)
    errors.raise_if_any()

    totals = _checked_totals(items, tax_cents, discount_cents)

    vendor = db.session.get(Vendor, vendor_id)
    if not vendor:
        raise NotFoundError("Vendor not found")
    if vendor.is_deleted:
        raise InvalidStateError("Vendor is in trash")

    order_number = sequence_service.next_order_number()

    # The allocation committed; re-read the vendor under lock for the order insert
    vendor = vendor_service.get_vendor_for_update(vendor_id)
    if vendor.is_deleted:
        db.session.rollback()
        raise InvalidStateError("Vendor is in trash")

    po = PurchaseOrder(
        order_number=order_number,
        vendor_id=vendor.id,
        status=status,
        payment_terms=normalize_str(data.get("payment_terms")),
        due_date=due_date,
        notes=normalize_str(data.get("notes")),
        created_by_user_id=actor.id,
        amount_paid_cents=0,
    )
    _apply_lines(po, items, totals)
    _apply_attachments(po, attachments)
    _refresh_payment_status(po)

    db.session.add(po)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if "order_number" not in str(exc.orig):
            raise
        raise ConflictError(f"Order number {order_number} already exists")

    logger.info("Purchase order %s created for vendor %s by user %s", order_number, vendor.id, actor.id)
    return po


def update_purchase_order(po_id: int, data: dict, *, actor: User) -> PurchaseOrder:
    """
    Replace items and optional header fields of a draft or pending order.

    tax_cents / discount_cents keep their stored value when the key is
    absent from data. Totals are recomputed from the new items.

    Raises:
        NotFoundError: If purchase order not found
        InvalidStateError: If status is not draft or pending
        ValidationError: malformed items or amounts
    """
    data = data or {}

    def _op() -> PurchaseOrder:
        po = _load_for_update(po_id)
        if po.status not in EDITABLE_STATUSES:
            raise InvalidStateError(f"Cannot edit purchase order in {po.status} status")

        errors = FieldErrors()
        items = _parse_items(data.get("items"), errors)
        tax_cents = po.tax_cents
        if "tax_cents" in data:
            tax_cents = errors.capture(coerce_cents, data.get("tax_cents"), "tax_cents")
        discount_cents = po.discount_cents
        if "discount_cents" in data:
            discount_cents = errors.capture(coerce_cents, data.get("discount_cents"), "discount_cents")
        due_date = po.due_date
        if "due_date" in data:
            due_date = _parse_due_date(data.get("due_date"), errors)
        attachments = None
        if "attachments" in data:
            attachments = _parse_attachments(data.get("attachments"), errors)
        errors.raise_if_any()

        totals = _checked_totals(items, tax_cents, discount_cents)

        _apply_lines(po, items, totals)
        po.due_date = due_date
        if "payment_terms" in data:
            po.payment_terms = normalize_str(data.get("payment_terms"))
        if "notes" in data:
            po.notes = normalize_str(data.get("notes"))
        if attachments is not None:
            _apply_attachments(po, attachments)
        _refresh_payment_status(po)

        db.session.commit()
        return po

    po = run_with_retry(_op)
    logger.info("Purchase order %s updated by user %s", po.order_number, actor.id)
    return po


def submit_purchase_order(po_id: int, *, actor: User) -> PurchaseOrder:
    """draft -> pending."""
    def _op() -> PurchaseOrder:
        po = _load_for_update(po_id)
        if po.status != PO_STATUS_DRAFT:
            raise InvalidStateError(f"Only draft purchase orders can be submitted (status is {po.status})")
        po.status = PO_STATUS_PENDING
        db.session.commit()
        return po

    po = run_with_retry(_op)
    logger.info("Purchase order %s submitted by user %s", po.order_number, actor.id)
    return po


def set_status(po_id: int, new_status: str, note: str, *, actor: User) -> PurchaseOrder:
    """
    Decide a pending purchase order: approve, reject or cancel it.

    Appends one approval-history entry with the actor and note.

    Raises:
        ValidationError: status not in approved / rejected / cancelled, or empty note
        NotFoundError: If purchase order not found
        InvalidStateError: If the order is not pending
    """
    errors = FieldErrors()
    new_status = errors.choice(normalize_str(new_status), "status", DECISION_STATUSES)
    note = normalize_str(note)
    if not note:
        errors.add("note", "Note is required")
    errors.raise_if_any()

    def _op() -> PurchaseOrder:
        po = _load_for_update(po_id)
        if po.status != PO_STATUS_PENDING:
            raise InvalidStateError(
                f"Cannot change status to {new_status}: purchase order is {po.status}, expected pending"
            )
        po.approvals.append(PurchaseOrderApproval(
            status=new_status,
            note=note,
            actor_user_id=actor.id,
            created_at=utcnow(),
        ))
        po.status = new_status
        db.session.commit()
        return po

    po = run_with_retry(_op)
    logger.info("Purchase order %s %s by user %s", po.order_number, new_status, actor.id)
    return po


def complete_purchase_order(po_id: int, *, actor: User) -> PurchaseOrder:
    """approved and fully paid -> completed."""
    def _op() -> PurchaseOrder:
        po = _load_for_update(po_id)
        if po.status != PO_STATUS_APPROVED:
            raise InvalidStateError(f"Only approved purchase orders can be completed (status is {po.status})")
        if po.payment_status != PAYMENT_STATUS_PAID:
            raise InvalidStateError("Purchase order must be fully paid before completion")
        po.status = PO_STATUS_COMPLETED
        db.session.commit()
        return po

    po = run_with_retry(_op)
    logger.info("Purchase order %s completed by user %s", po.order_number, actor.id)
    return po


def soft_delete_purchase_order(po_id: int, *, actor: User) -> PurchaseOrder:
    """
    Move a draft or rejected order to the trash.

    Raises:
        NotFoundError: If purchase order not found
        InvalidStateError: If status is not draft or rejected
    """
    def _op() -> PurchaseOrder:
        po = _load_for_update(po_id)
        if po.status not in DELETABLE_STATUSES:
            raise InvalidStateError("Only draft or rejected purchase orders can be deleted")
        po.status = PO_STATUS_DELETED
        po.deleted_at = utcnow()
        po.deleted_by_user_id = actor.id
        db.session.commit()
        return po

    po = run_with_retry(_op)
    logger.info("Purchase order %s moved to trash by user %s", po.order_number, actor.id)
    return po


def restore_purchase_order(po_id: int) -> PurchaseOrder:
    """
    Restore an order from the trash back to draft.

    Raises:
        NotFoundError: If purchase order not found
        InvalidStateError: If the order is not in the trash
    """
    def _op() -> PurchaseOrder:
        po = _load_for_update(po_id)
        if po.status != PO_STATUS_DELETED:
            raise InvalidStateError("Purchase order is not in trash")
        po.status = PO_STATUS_DRAFT
        po.deleted_at = None
        po.deleted_by_user_id = None
        db.session.commit()
        return po

    po = run_with_retry(_op)
    logger.info("Purchase order %s restored", po.order_number)
    return po


def permanent_delete_purchase_order(po_id: int) -> None:
    """
    Remove an order from the trash irrevocably, with its lines, history,
    payments and attachments.

    Raises:
        NotFoundError: If purchase order not found
        InvalidStateError: If the order is not in the trash
    """
    po = _load_for_update(po_id)
    if po.status != PO_STATUS_DELETED:
        raise InvalidStateError("Purchase order must be in trash before permanent deletion")
    order_number = po.order_number
    db.session.delete(po)
    db.session.commit()
    logger.info("Purchase order %s permanently deleted", order_number)


def add_payment(
    po_id: int,
    *,
    amount_cents,
    method: str,
    reference: str,
    actor: User,
    note: str | None = None,
    paid_at: str | None = None,
) -> PurchaseOrder:
    """
    Append a payment to the ledger of an approved order.

    The balance check runs against the locked, freshly read ledger, so two
    concurrent payments cannot together exceed the order total.

    Raises:
        ValidationError: amount <= 0, unknown method, empty reference, bad
            date, or amount larger than the remaining balance
        NotFoundError: If purchase order not found
        InvalidStateError: If the order is not approved
    """
    errors = FieldErrors()
    amount = errors.capture(coerce_cents, amount_cents, "amount_cents", minimum=1)
    method = errors.choice(normalize_str(method), "method", PAYMENT_METHODS)
    reference = normalize_str(reference)
    if not reference:
        errors.add("reference", "Payment reference is required")
    try:
        paid_at_value = parse_iso_datetime(paid_at) if paid_at is not None else None
    except (TypeError, ValueError):
        errors.add("date", "Invalid payment date")
        paid_at_value = None
    errors.raise_if_any()

    def _op() -> PurchaseOrder:
        po = _load_for_update(po_id)
        if po.status != PO_STATUS_APPROVED:
            raise InvalidStateError("Payments can only be added to approved purchase orders")

        paid = sum_payments(p.amount_cents for p in po.payments)
        remaining = remaining_balance(po.total_cents, paid)
        if amount > remaining:
            raise ValidationError.for_field(
                "amount_cents",
                f"Payment amount exceeds remaining balance of {remaining}",
            )

        po.payments.append(PurchaseOrderPayment(
            amount_cents=amount,
            method=method,
            reference=reference,
            note=normalize_str(note),
            paid_at=paid_at_value or utcnow(),
            processed_by_user_id=actor.id,
        ))
        _refresh_payment_status(po)
        db.session.commit()
        return po

    po = run_with_retry(_op)
    logger.info(
        "Payment of %d recorded on purchase order %s by user %s (%s)",
        amount, po.order_number, actor.id, po.payment_status,
    )
    return po
