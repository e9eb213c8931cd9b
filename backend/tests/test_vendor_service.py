"""
Vendor service tests.

Verifies:
- Normalization of incoming fields
- Uniqueness of email (among live vendors), PAN and VAT numbers
- Trash lifecycle: soft delete guard, restore, permanent delete
"""

import pytest

from bizzflow.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from bizzflow.services import purchase_order_service, vendor_service


# =============================================================================
# CREATE
# =============================================================================


class TestCreateVendor:

    def test_normalizes_strings_and_email(self, db_session, user, vendor_payload):
        vendor = vendor_service.create_vendor(
            vendor_payload(name="  Acme Supplies  ", email="  Sales@ACME.test ", pan_number=" 123456789 "),
            actor=user,
        )
        assert vendor.name == "Acme Supplies"
        assert vendor.email == "sales@acme.test"
        assert vendor.pan_number == "123456789"
        assert vendor.status == "active"
        assert vendor.created_by_user_id == user.id

    def test_drops_number_of_other_registration_type(self, db_session, user, vendor_payload):
        vendor = vendor_service.create_vendor(
            vendor_payload(registration_type="vat", vat_number="VAT-77", pan_number="ignored"),
            actor=user,
        )
        assert vendor.vat_number == "VAT-77"
        assert vendor.pan_number is None

    def test_reports_every_missing_field(self, db_session, user):
        with pytest.raises(ValidationError) as exc:
            vendor_service.create_vendor({"registration_type": "pan"}, actor=user)

        fields = {e["field"] for e in exc.value.errors}
        assert {"name", "email", "phone", "address", "pan_number", "bank_details"} <= fields

    def test_vat_registration_requires_vat_number(self, db_session, user, vendor_payload):
        with pytest.raises(ValidationError) as exc:
            vendor_service.create_vendor(
                vendor_payload(registration_type="vat", pan_number=None), actor=user
            )
        assert [e["field"] for e in exc.value.errors] == ["vat_number"]

    def test_rejects_unknown_category(self, db_session, user, vendor_payload):
        with pytest.raises(ValidationError):
            vendor_service.create_vendor(vendor_payload(category="wholesaler"), actor=user)

    def test_rejects_incomplete_bank_details(self, db_session, user, vendor_payload):
        payload = vendor_payload()
        payload["bank_details"]["branch"] = " "
        with pytest.raises(ValidationError) as exc:
            vendor_service.create_vendor(payload, actor=user)
        assert exc.value.errors[0]["field"] == "bank_details.branch"


class TestVendorUniqueness:

    def test_duplicate_email_conflicts(self, db_session, make_vendor):
        make_vendor(email="same@vendor.test")
        with pytest.raises(ConflictError):
            make_vendor(email="SAME@vendor.test")

    def test_duplicate_pan_conflicts(self, db_session, make_vendor):
        make_vendor(pan_number="123456789")
        with pytest.raises(ConflictError):
            make_vendor(pan_number="123456789")

    def test_duplicate_vat_conflicts(self, db_session, make_vendor):
        make_vendor(registration_type="vat", pan_number=None, vat_number="VAT-1")
        with pytest.raises(ConflictError):
            make_vendor(registration_type="vat", pan_number=None, vat_number="VAT-1")

    def test_email_of_trashed_vendor_can_be_reused(self, db_session, user, make_vendor):
        old = make_vendor(email="reuse@vendor.test")
        vendor_service.soft_delete_vendor(old.id, actor=user)

        new = make_vendor(email="reuse@vendor.test")
        assert new.id != old.id


# =============================================================================
# UPDATE
# =============================================================================


class TestUpdateVendor:

    def test_partial_update_keeps_other_fields(self, db_session, user, vendor):
        updated = vendor_service.update_vendor(
            vendor.id,
            {"phone": " 9800000000 ", "bank_details": {"branch": "Thamel"}},
            actor=user,
        )
        assert updated.phone == "9800000000"
        assert updated.bank_branch == "Thamel"
        assert updated.bank_name == "Everest Bank"
        assert updated.name == vendor.name

    def test_switching_registration_type_needs_matching_number(self, db_session, user, vendor):
        with pytest.raises(ValidationError):
            vendor_service.update_vendor(vendor.id, {"registration_type": "vat"}, actor=user)

        updated = vendor_service.update_vendor(
            vendor.id, {"registration_type": "vat", "vat_number": "VAT-9"}, actor=user
        )
        assert updated.pan_number is None
        assert updated.vat_number == "VAT-9"

    def test_email_taken_by_another_vendor_conflicts(self, db_session, user, make_vendor):
        first = make_vendor(email="first@vendor.test")
        second = make_vendor()
        with pytest.raises(ConflictError):
            vendor_service.update_vendor(second.id, {"email": first.email}, actor=user)

    def test_keeping_own_email_is_not_a_conflict(self, db_session, user, vendor):
        updated = vendor_service.update_vendor(vendor.id, {"email": vendor.email, "name": "Renamed"}, actor=user)
        assert updated.name == "Renamed"

    def test_status_cannot_be_set_to_deleted(self, db_session, user, vendor):
        with pytest.raises(ValidationError):
            vendor_service.update_vendor(vendor.id, {"status": "deleted"}, actor=user)

    def test_blacklisting(self, db_session, user, vendor):
        updated = vendor_service.update_vendor(vendor.id, {"status": "blacklisted"}, actor=user)
        assert updated.status == "blacklisted"

    def test_missing_vendor(self, db_session, user):
        with pytest.raises(NotFoundError):
            vendor_service.update_vendor(9999, {"name": "x"}, actor=user)

    def test_trashed_vendor_cannot_be_edited(self, db_session, user, vendor):
        vendor_service.soft_delete_vendor(vendor.id, actor=user)
        with pytest.raises(InvalidStateError):
            vendor_service.update_vendor(vendor.id, {"name": "x"}, actor=user)


# =============================================================================
# TRASH LIFECYCLE
# =============================================================================


class TestVendorTrash:

    def test_soft_delete_sets_markers(self, db_session, user, vendor):
        deleted = vendor_service.soft_delete_vendor(vendor.id, actor=user)
        assert deleted.status == "deleted"
        assert deleted.deleted_at is not None
        assert deleted.deleted_by_user_id == user.id

    def test_open_purchase_order_blocks_soft_delete(self, db_session, user, vendor, make_po):
        make_po()
        with pytest.raises(InvalidStateError):
            vendor_service.soft_delete_vendor(vendor.id, actor=user)
        assert vendor_service.get_vendor(vendor.id).status == "active"

    def test_closed_purchase_orders_do_not_block(self, db_session, user, vendor, make_po):
        po = make_po()
        purchase_order_service.submit_purchase_order(po.id, actor=user)
        purchase_order_service.set_status(po.id, "cancelled", "Not needed", actor=user)

        deleted = vendor_service.soft_delete_vendor(vendor.id, actor=user)
        assert deleted.status == "deleted"

    def test_soft_delete_twice(self, db_session, user, vendor):
        vendor_service.soft_delete_vendor(vendor.id, actor=user)
        with pytest.raises(InvalidStateError):
            vendor_service.soft_delete_vendor(vendor.id, actor=user)

    def test_restore_returns_to_active(self, db_session, user, vendor):
        vendor_service.soft_delete_vendor(vendor.id, actor=user)
        restored = vendor_service.restore_vendor(vendor.id)
        assert restored.status == "active"
        assert restored.deleted_at is None
        assert restored.deleted_by_user_id is None

    def test_restore_of_live_vendor(self, db_session, vendor):
        with pytest.raises(InvalidStateError):
            vendor_service.restore_vendor(vendor.id)

    def test_restore_conflicts_when_email_was_reused(self, db_session, user, make_vendor):
        old = make_vendor(email="shared@vendor.test")
        vendor_service.soft_delete_vendor(old.id, actor=user)
        make_vendor(email="shared@vendor.test")

        with pytest.raises(ConflictError):
            vendor_service.restore_vendor(old.id)

    def test_permanent_delete_requires_trash(self, db_session, vendor):
        with pytest.raises(InvalidStateError):
            vendor_service.permanent_delete_vendor(vendor.id)

    def test_permanent_delete(self, db_session, user, vendor):
        vendor_id = vendor.id
        vendor_service.soft_delete_vendor(vendor_id, actor=user)
        vendor_service.permanent_delete_vendor(vendor_id)
        with pytest.raises(NotFoundError):
            vendor_service.get_vendor(vendor_id)

    def test_permanent_delete_blocked_by_purchase_orders(self, db_session, user, vendor, make_po):
        po = make_po()
        purchase_order_service.soft_delete_purchase_order(po.id, actor=user)
        vendor_service.soft_delete_vendor(vendor.id, actor=user)

        with pytest.raises(ConflictError):
            vendor_service.permanent_delete_vendor(vendor.id)


# =============================================================================
# QUERIES
# =============================================================================


class TestListVendors:

    def test_trash_hidden_by_default(self, db_session, user, make_vendor):
        keep = make_vendor()
        gone = make_vendor()
        vendor_service.soft_delete_vendor(gone.id, actor=user)

        vendors, total = vendor_service.list_vendors()
        assert total == 1
        assert [v.id for v in vendors] == [keep.id]

        vendors, total = vendor_service.list_vendors(include_deleted=True)
        assert total == 2

        vendors, total = vendor_service.list_vendors(status="deleted")
        assert [v.id for v in vendors] == [gone.id]

    def test_search(self, db_session, make_vendor):
        make_vendor(name="Himalayan Traders")
        make_vendor(name="Terai Mills")

        vendors, total = vendor_service.list_vendors(search="himal")
        assert total == 1
        assert vendors[0].name == "Himalayan Traders"

    def test_vendor_purchase_orders(self, db_session, vendor, make_po):
        first = make_po()
        second = make_po()
        orders = vendor_service.list_vendor_purchase_orders(vendor.id)
        assert {po.id for po in orders} == {first.id, second.id}

    def test_vendor_purchase_orders_missing_vendor(self, db_session):
        with pytest.raises(NotFoundError):
            vendor_service.list_vendor_purchase_orders(12345)
