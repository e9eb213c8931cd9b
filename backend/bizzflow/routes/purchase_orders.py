# Overview: Flask API routes for purchase order operations; parses input and returns JSON responses.

"""
Purchase Order Routes

All routes require authentication. Amounts are integer cents.

Lifecycle:
    POST   /api/purchase-orders                 create (draft)
    PUT    /api/purchase-orders/<id>            edit (draft / pending)
    POST   /api/purchase-orders/<id>/submit     draft -> pending
    PUT    /api/purchase-orders/<id>/status     approve / reject / cancel
    POST   /api/purchase-orders/<id>/payments   record a payment (approved)
    POST   /api/purchase-orders/<id>/complete   approved + paid -> completed
    DELETE /api/purchase-orders/<id>            move to trash
    POST   /api/purchase-orders/<id>/restore    back to draft
    DELETE /api/purchase-orders/<id>/permanent  remove from trash
"""

from flask import Blueprint, request, jsonify, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_auth
from ..errors import DomainError, error_response
from ..models.purchasing import PO_STATUS_DELETED
from ..services import purchase_order_service
from ..validation import parse_bool_arg, parse_pagination


purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


def _internal_error(action: str):
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.get("")
@require_auth
def list_purchase_orders_route():
    """
    List purchase orders.

    Query parameters:
    - status: Filter by status
    - vendor_id: Filter by vendor
    - search: Order number or vendor name
    - include_deleted: Include orders in the trash (default: false)
    - limit / offset: Pagination

    Returns:
        {items: PurchaseOrderSummary[], count: int, limit: int, offset: int}
    """
    limit, offset = parse_pagination(request.args)

    try:
        orders, total = purchase_order_service.list_purchase_orders(
            status=request.args.get("status"),
            vendor_id=request.args.get("vendor_id", type=int),
            search=request.args.get("search"),
            include_deleted=parse_bool_arg(request.args, "include_deleted"),
            limit=limit,
            offset=offset,
        )
    except SQLAlchemyError:
        return _internal_error("list purchase orders")

    return jsonify({
        "items": [po.to_summary() for po in orders],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@purchase_orders_bp.get("/trash")
@require_auth
def list_trashed_purchase_orders_route():
    """List purchase orders in the trash."""
    limit, offset = parse_pagination(request.args)

    try:
        orders, total = purchase_order_service.list_purchase_orders(
            status=PO_STATUS_DELETED, limit=limit, offset=offset,
        )
    except SQLAlchemyError:
        return _internal_error("list deleted purchase orders")

    return jsonify({
        "items": [po.to_summary() for po in orders],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@purchase_orders_bp.get("/<int:po_id>")
@require_auth
def get_purchase_order_route(po_id: int):
    """Purchase order with items, vendor contact, approval history and payments."""
    try:
        po = purchase_order_service.get_purchase_order(po_id)
        return jsonify(po.to_dict())
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("get purchase order")


@purchase_orders_bp.post("")
@require_auth
def create_purchase_order_route():
    """
    Create a purchase order.

    Request body:
    {
        "vendor_id": 1,                                    // required
        "items": [                                         // required, non-empty
            {"description": "Widget", "quantity": 10, "unit_price_cents": 500, "unit": "piece"}
        ],
        "due_date": "2026-11-01",                          // required
        "tax_cents": 0,                                    // optional
        "discount_cents": 0,                               // optional
        "payment_terms": "Net 30",                         // optional
        "notes": "...",                                    // optional
        "attachments": [{"name": "...", "url": "...", "type": "..."}],
        "status": "draft"                                  // draft (default) or pending
    }

    Returns:
        Created PurchaseOrder (201)
    """
    data = request.get_json(silent=True) or {}

    try:
        po = purchase_order_service.create_purchase_order(data, actor=g.current_user)
        return jsonify(po.to_dict()), 201
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("create purchase order")


@purchase_orders_bp.put("/<int:po_id>")
@require_auth
def update_purchase_order_route(po_id: int):
    """
    Replace items (and optionally tax, discount, terms, due date, notes,
    attachments) of a draft or pending purchase order.
    """
    data = request.get_json(silent=True) or {}

    try:
        po = purchase_order_service.update_purchase_order(po_id, data, actor=g.current_user)
        return jsonify(po.to_dict())
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("update purchase order")


@purchase_orders_bp.post("/<int:po_id>/submit")
@require_auth
def submit_purchase_order_route(po_id: int):
    try:
        po = purchase_order_service.submit_purchase_order(po_id, actor=g.current_user)
        return jsonify(po.to_dict())
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("submit purchase order")


@purchase_orders_bp.put("/<int:po_id>/status")
@require_auth
def set_purchase_order_status_route(po_id: int):
    """
    Approve, reject or cancel a pending purchase order.

    Request body:
    {
        "status": "approved",  // approved | rejected | cancelled
        "note": "..."          // required
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        po = purchase_order_service.set_status(
            po_id,
            data.get("status"),
            data.get("note"),
            actor=g.current_user,
        )
        return jsonify(po.to_dict())
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("update purchase order status")


@purchase_orders_bp.post("/<int:po_id>/complete")
@require_auth
def complete_purchase_order_route(po_id: int):
    try:
        po = purchase_order_service.complete_purchase_order(po_id, actor=g.current_user)
        return jsonify(po.to_dict())
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("complete purchase order")


@purchase_orders_bp.post("/<int:po_id>/payments")
@require_auth
def add_payment_route(po_id: int):
    """
    Record a payment against an approved purchase order.

    Request body:
    {
        "amount_cents": 5000,        // required, > 0, <= remaining balance
        "method": "cash",            // cash | bank-transfer | cheque
        "reference": "RCPT-001",     // required
        "note": "...",               // optional
        "date": "2026-10-18T10:00Z"  // optional, defaults to now
    }

    Returns:
        Updated PurchaseOrder (201)
    """
    data = request.get_json(silent=True) or {}

    try:
        po = purchase_order_service.add_payment(
            po_id,
            amount_cents=data.get("amount_cents"),
            method=data.get("method"),
            reference=data.get("reference"),
            note=data.get("note"),
            paid_at=data.get("date"),
            actor=g.current_user,
        )
        return jsonify(po.to_dict()), 201
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("add payment")


@purchase_orders_bp.get("/<int:po_id>/payments")
@require_auth
def list_payments_route(po_id: int):
    """Payment ledger with paid and remaining amounts."""
    try:
        po = purchase_order_service.get_purchase_order(po_id)
        return jsonify(purchase_order_service.payment_summary(po))
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("list payments")


@purchase_orders_bp.delete("/<int:po_id>")
@require_auth
def delete_purchase_order_route(po_id: int):
    """Move a draft or rejected purchase order to the trash."""
    try:
        po = purchase_order_service.soft_delete_purchase_order(po_id, actor=g.current_user)
        return jsonify({"message": "Purchase order moved to trash", "purchase_order": po.to_dict()})
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("delete purchase order")


@purchase_orders_bp.post("/<int:po_id>/restore")
@require_auth
def restore_purchase_order_route(po_id: int):
    try:
        po = purchase_order_service.restore_purchase_order(po_id)
        return jsonify({"message": "Purchase order restored", "purchase_order": po.to_dict()})
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("restore purchase order")


@purchase_orders_bp.delete("/<int:po_id>/permanent")
@require_auth
def permanent_delete_purchase_order_route(po_id: int):
    try:
        purchase_order_service.permanent_delete_purchase_order(po_id)
        return jsonify({"message": "Purchase order permanently deleted"})
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("permanently delete purchase order")
