# Overview: Flask API routes for vendor operations; parses input and returns JSON responses.

"""
Vendor Routes

All routes require authentication. Deletion follows the trash triad:
DELETE moves a vendor to the trash, POST /restore brings it back and
DELETE /permanent removes it for good.
"""

from flask import Blueprint, request, jsonify, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_auth
from ..errors import DomainError, error_response
from ..services import vendor_service
from ..models.vendors import VENDOR_STATUS_DELETED
from ..validation import parse_bool_arg, parse_pagination


vendors_bp = Blueprint("vendors", __name__, url_prefix="/api/vendors")


def _internal_error(action: str):
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500


@vendors_bp.get("")
@require_auth
def list_vendors_route():
    """
    List vendors.

    Query parameters:
    - status: Filter by status (active, inactive, blacklisted, deleted)
    - search: Search term for name, email, PAN or VAT number
    - include_deleted: Include vendors in the trash (default: false)
    - limit: Maximum results (default: 100)
    - offset: Pagination offset (default: 0)

    Returns:
        {items: Vendor[], count: int, limit: int, offset: int}
    """
    limit, offset = parse_pagination(request.args)

    try:
        vendors, total = vendor_service.list_vendors(
            status=request.args.get("status"),
            search=request.args.get("search"),
            include_deleted=parse_bool_arg(request.args, "include_deleted"),
            limit=limit,
            offset=offset,
        )
    except SQLAlchemyError:
        return _internal_error("list vendors")

    return jsonify({
        "items": [v.to_dict() for v in vendors],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@vendors_bp.get("/trash")
@require_auth
def list_trashed_vendors_route():
    """List vendors in the trash."""
    limit, offset = parse_pagination(request.args)

    try:
        vendors, total = vendor_service.list_vendors(
            status=VENDOR_STATUS_DELETED, limit=limit, offset=offset,
        )
    except SQLAlchemyError:
        return _internal_error("list deleted vendors")

    return jsonify({
        "items": [v.to_dict() for v in vendors],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@vendors_bp.post("")
@require_auth
def create_vendor_route():
    """
    Create a new vendor.

    Request body:
    {
        "name": "Acme Supplies",         // required
        "email": "sales@acme.example",   // required, unique among active vendors
        "phone": "...",                  // required
        "address": "...",                // required
        "registration_type": "pan",      // pan (default) or vat
        "pan_number": "123456789",       // required for pan
        "vat_number": "...",             // required for vat
        "category": "supplier",          // optional
        "bank_details": {                // required
            "account_name": "...",
            "account_number": "...",
            "bank_name": "...",
            "branch": "..."
        }
    }

    Returns:
        Created Vendor object (201)
    """
    data = request.get_json(silent=True) or {}

    try:
        vendor = vendor_service.create_vendor(data, actor=g.current_user)
        return jsonify(vendor.to_dict()), 201
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("create vendor")


@vendors_bp.get("/<int:vendor_id>")
@require_auth
def get_vendor_route(vendor_id: int):
    try:
        vendor = vendor_service.get_vendor(vendor_id)
        return jsonify(vendor.to_dict())
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("get vendor")


@vendors_bp.put("/<int:vendor_id>")
@require_auth
def update_vendor_route(vendor_id: int):
    """
    Update a vendor. Only provided fields are changed; bank_details may be
    partial.

    Returns:
        Updated Vendor object
    """
    data = request.get_json(silent=True) or {}

    try:
        vendor = vendor_service.update_vendor(vendor_id, data, actor=g.current_user)
        return jsonify(vendor.to_dict())
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("update vendor")


@vendors_bp.delete("/<int:vendor_id>")
@require_auth
def delete_vendor_route(vendor_id: int):
    """
    Move a vendor to the trash.

    Fails with 400 while the vendor has open purchase orders.
    """
    try:
        vendor = vendor_service.soft_delete_vendor(vendor_id, actor=g.current_user)
        return jsonify({"message": "Vendor moved to trash", "vendor": vendor.to_dict()})
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("delete vendor")


@vendors_bp.post("/<int:vendor_id>/restore")
@require_auth
def restore_vendor_route(vendor_id: int):
    try:
        vendor = vendor_service.restore_vendor(vendor_id)
        return jsonify({"message": "Vendor restored", "vendor": vendor.to_dict()})
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("restore vendor")


@vendors_bp.delete("/<int:vendor_id>/permanent")
@require_auth
def permanent_delete_vendor_route(vendor_id: int):
    try:
        vendor_service.permanent_delete_vendor(vendor_id)
        return jsonify({"message": "Vendor permanently deleted"})
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("permanently delete vendor")


@vendors_bp.get("/<int:vendor_id>/purchase-orders")
@require_auth
def vendor_purchase_orders_route(vendor_id: int):
    """Purchase orders issued to a vendor, newest first."""
    try:
        orders = vendor_service.list_vendor_purchase_orders(vendor_id)
        return jsonify({
            "items": [po.to_summary() for po in orders],
            "count": len(orders),
        })
    except DomainError as e:
        return error_response(e)
    except SQLAlchemyError:
        return _internal_error("list vendor purchase orders")
