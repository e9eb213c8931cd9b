from __future__ import annotations

from ..extensions import db
from bizzflow.time_utils import to_utc_z


# Lifecycle status
PO_STATUS_DRAFT = "draft"
PO_STATUS_PENDING = "pending"
PO_STATUS_APPROVED = "approved"
PO_STATUS_REJECTED = "rejected"
PO_STATUS_CANCELLED = "cancelled"
PO_STATUS_COMPLETED = "completed"
PO_STATUS_DELETED = "deleted"
PO_STATUSES = (
    PO_STATUS_DRAFT,
    PO_STATUS_PENDING,
    PO_STATUS_APPROVED,
    PO_STATUS_REJECTED,
    PO_STATUS_CANCELLED,
    PO_STATUS_COMPLETED,
    PO_STATUS_DELETED,
)

# Payment status (derived from the payment ledger)
PAYMENT_STATUS_UNPAID = "unpaid"
PAYMENT_STATUS_PARTIAL = "partially-paid"
PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUSES = (PAYMENT_STATUS_UNPAID, PAYMENT_STATUS_PARTIAL, PAYMENT_STATUS_PAID)

PAYMENT_METHODS = ("cash", "bank-transfer", "cheque")


class PurchaseOrder(db.Model):
    """
    Purchase order issued to a vendor.

    STATE MACHINE:
        draft --submit--> pending
        pending --approve/reject/cancel--> approved / rejected / cancelled
        approved --complete (fully paid)--> completed
        draft|rejected --soft delete--> deleted --restore--> draft

    DERIVED FIELDS: line totals, subtotal, total, amount_paid and
    payment_status are recomputed by the service layer before every write
    (see services.po_calculations); they are never taken from client input.

    CONCURRENCY: version_id is the optimistic-lock column. A write based on
    a stale read raises StaleDataError and the service retries.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_purchase_orders_order_number"),
        db.Index("ix_purchase_orders_vendor_created", "vendor_id", "created_at"),
        db.Index("ix_purchase_orders_status_due", "status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable order number (e.g., "PO-000042"), immutable once assigned
    order_number = db.Column(db.String(32), nullable=False)

    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)

    # Totals (all amounts in cents)
    subtotal_cents = db.Column(db.BigInteger, nullable=False, default=0)
    tax_cents = db.Column(db.BigInteger, nullable=False, default=0)
    discount_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_cents = db.Column(db.BigInteger, nullable=False, default=0)
    amount_paid_cents = db.Column(db.BigInteger, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=PO_STATUS_DRAFT, index=True)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_UNPAID)

    payment_terms = db.Column(db.String(255), nullable=True)
    due_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    # Audit fields
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    vendor = db.relationship("Vendor", backref=db.backref("purchase_orders", lazy="dynamic"))
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    deleted_by = db.relationship("User", foreign_keys=[deleted_by_user_id])

    lines = db.relationship(
        "PurchaseOrderLine",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLine.position",
    )
    approvals = db.relationship(
        "PurchaseOrderApproval",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderApproval.id",
    )
    payments = db.relationship(
        "PurchaseOrderPayment",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderPayment.id",
    )
    attachments = db.relationship(
        "PurchaseOrderAttachment",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderAttachment.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<PurchaseOrder id={self.id} number={self.order_number!r} status={self.status}>"

    @property
    def balance_due_cents(self) -> int:
        return self.total_cents - self.amount_paid_cents

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "vendor_id": self.vendor_id,
            "vendor": self.vendor.to_summary() if self.vendor else None,
            "status": self.status,
            "payment_status": self.payment_status,
            "total_cents": self.total_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "line_count": len(self.lines),
            "created_at": to_utc_z(self.created_at),
            "deleted_at": to_utc_z(self.deleted_at),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "vendor_id": self.vendor_id,
            "vendor": self.vendor.to_contact() if self.vendor else None,
            "items": [line.to_dict() for line in self.lines],
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "balance_due_cents": self.balance_due_cents,
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_terms": self.payment_terms,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "notes": self.notes,
            "attachments": [a.to_dict() for a in self.attachments],
            "approval_history": [a.to_dict() for a in self.approvals],
            "payments": [p.to_dict() for p in self.payments],
            "created_by_user_id": self.created_by_user_id,
            "deleted_at": to_utc_z(self.deleted_at),
            "deleted_by_user_id": self.deleted_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class PurchaseOrderLine(db.Model):
    """Individual line items on a purchase order."""
    __tablename__ = "purchase_order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(
        db.Integer, db.ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = db.Column(db.Integer, nullable=False, default=0)

    description = db.Column(db.String(512), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(32), nullable=False, default="piece")
    unit_price_cents = db.Column(db.BigInteger, nullable=False)
    line_total_cents = db.Column(db.BigInteger, nullable=False)

    purchase_order = db.relationship("PurchaseOrder", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "quantity": self.quantity,
            "unit": self.unit,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class PurchaseOrderApproval(db.Model):
    """
    Append-only approval history entry.

    One row per approve / reject / cancel decision, with the actor and the
    mandatory note. Rows are never updated.
    """
    __tablename__ = "purchase_order_approvals"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(
        db.Integer, db.ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = db.Column(db.String(16), nullable=False)
    note = db.Column(db.Text, nullable=False)
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    purchase_order = db.relationship("PurchaseOrder", back_populates="approvals")
    actor = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "note": self.note,
            "by": self.actor.to_ref() if self.actor else {"id": self.actor_user_id},
            "date": to_utc_z(self.created_at),
        }


class PurchaseOrderPayment(db.Model):
    """
    Payment ledger entry.

    Immutable once appended; there is no edit or delete operation. The sum
    of amount_cents over a purchase order never exceeds its total.
    """
    __tablename__ = "purchase_order_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="positive_amount"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(
        db.Integer, db.ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount_cents = db.Column(db.BigInteger, nullable=False)
    method = db.Column(db.String(16), nullable=False)
    reference = db.Column(db.String(255), nullable=False)
    note = db.Column(db.Text, nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False)
    processed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    purchase_order = db.relationship("PurchaseOrder", back_populates="payments")
    processed_by = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "reference": self.reference,
            "note": self.note,
            "date": to_utc_z(self.paid_at),
            "processed_by": (
                self.processed_by.to_ref() if self.processed_by else {"id": self.processed_by_user_id}
            ),
        }


class PurchaseOrderAttachment(db.Model):
    """File reference attached to a purchase order (quotation, invoice scan)."""
    __tablename__ = "purchase_order_attachments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(
        db.Integer, db.ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = db.Column(db.String(255), nullable=False)
    url = db.Column(db.String(1024), nullable=False)
    content_type = db.Column(db.String(128), nullable=True)
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False)

    purchase_order = db.relationship("PurchaseOrder", back_populates="attachments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "type": self.content_type,
            "uploaded_at": to_utc_z(self.uploaded_at),
        }
