"""
Product registry tests.

Verifies:
- Registration allocates gapless global ids and writes the manufacture checkpoint
- Registration is all-or-nothing
- Shipping details: custodian or authorized verifier only
- Recall: manufacturer only, recall checkpoint, blocks further activity
- Authenticity summary
"""

import pytest

from custody.errors import InvalidStateError, NotFoundError, UnauthorizedError, ValidationError
from custody.extensions import db
from custody.models import IdSequence, Product
from custody.models.products import PRODUCT_STATUS_DELIVERED, PRODUCT_STATUS_IN_TRANSIT, PRODUCT_STATUS_RECALLED
from custody.services import (
    authorization_service,
    checkpoint_service,
    product_service,
    transfer_service,
)

from tests.conftest import CARRIER, INSPECTOR, MANUFACTURER, START_TICK, STRANGER, sha


def _register(caller=MANUFACTURER, lot="L200"):
    return product_service.register_product(
        caller=caller,
        name="Vaccine Vial",
        description="",
        lot_number=lot,
        category="pharmaceutical",
        origin_location="Basel Plant 2",
    )


# =============================================================================
# REGISTRATION
# =============================================================================


class TestRegisterProduct:

    def test_first_product_gets_id_zero(self, product_id):
        assert product_id == 0

    def test_ids_are_gapless_across_manufacturers(self, db_session):
        ids = [_register(), _register(caller="other-maker"), _register(lot="L300")]
        assert ids == [0, 1, 2]

    def test_caller_is_manufacturer_and_custodian(self, product_id):
        product = product_service.get_product(product_id)
        assert product.manufacturer == MANUFACTURER
        assert product.current_custodian == MANUFACTURER
        assert product.lot_number == "L100"
        assert product.created_at == START_TICK
        assert product.destination is None
        assert product.expected_arrival is None

    def test_manufacture_checkpoint_written(self, product_id):
        checkpoint = checkpoint_service.get_checkpoint(product_id, 0)
        assert checkpoint.checkpoint_type == "manufacture"
        assert checkpoint.location == "Basel Plant 2"
        assert checkpoint.custodian == MANUFACTURER
        assert checkpoint.verifier == MANUFACTURER
        assert checkpoint.attestation_hash == sha("L100")

    def test_manufacture_checkpoint_moves_status_off_created(self, product_id):
        assert product_service.get_product(product_id).status == PRODUCT_STATUS_IN_TRANSIT

    def test_lot_hash_depends_on_lot(self, db_session):
        first = _register(lot="LOT-A")
        second = _register(lot="LOT-B")
        a = checkpoint_service.get_checkpoint(first, 0).attestation_hash
        b = checkpoint_service.get_checkpoint(second, 0).attestation_hash
        assert a != b

    def test_required_fields(self, db_session):
        with pytest.raises(ValidationError):
            product_service.register_product(
                caller=MANUFACTURER,
                name="  ",
                description="",
                lot_number="L1",
                category="c",
                origin_location="o",
            )
        with pytest.raises(ValidationError):
            _register(caller="")

    def test_failed_checkpoint_write_leaves_nothing_behind(self, db_session, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(product_service, "append_checkpoint", boom)
        with pytest.raises(RuntimeError):
            _register()

        assert db.session.query(Product).count() == 0
        assert db.session.query(IdSequence).count() == 0

        monkeypatch.undo()
        assert _register() == 0


# =============================================================================
# SHIPPING DETAILS
# =============================================================================


class TestShippingDetails:

    def test_custodian_sets_details(self, product_id):
        product_service.set_shipping_details(
            caller=MANUFACTURER, product_id=product_id, destination="Lyon DC", expected_arrival=2000,
        )
        product = product_service.get_product(product_id)
        assert product.destination == "Lyon DC"
        assert product.expected_arrival == 2000

    def test_overwrites_previous_details(self, product_id):
        product_service.set_shipping_details(
            caller=MANUFACTURER, product_id=product_id, destination="Lyon DC", expected_arrival=2000,
        )
        product_service.set_shipping_details(
            caller=MANUFACTURER, product_id=product_id, destination="Milan DC", expected_arrival=2500,
        )
        product = product_service.get_product(product_id)
        assert (product.destination, product.expected_arrival) == ("Milan DC", 2500)

    def test_authorized_verifier_of_custodian(self, product_id):
        authorization_service.authorize_verifier(
            caller=MANUFACTURER, verifier=INSPECTOR, name="QA Lab", role="inspector",
        )
        product_service.set_shipping_details(
            caller=INSPECTOR, product_id=product_id, destination="Lyon DC", expected_arrival=2000,
        )
        assert product_service.get_product(product_id).destination == "Lyon DC"

    def test_stranger_denied(self, product_id):
        with pytest.raises(UnauthorizedError):
            product_service.set_shipping_details(
                caller=STRANGER, product_id=product_id, destination="Nowhere", expected_arrival=2000,
            )
        assert product_service.get_product(product_id).destination is None

    def test_former_custodian_denied(self, product_id):
        transfer_id = transfer_service.initiate_transfer(caller=MANUFACTURER, product_id=product_id, recipient=CARRIER)
        transfer_service.accept_transfer(caller=CARRIER, product_id=product_id, transfer_id=transfer_id)
        with pytest.raises(UnauthorizedError):
            product_service.set_shipping_details(
                caller=MANUFACTURER, product_id=product_id, destination="Lyon DC", expected_arrival=2000,
            )

    def test_allowed_after_recall(self, product_id):
        product_service.recall_product(caller=MANUFACTURER, product_id=product_id, reason="Seal defect")
        product_service.set_shipping_details(
            caller=MANUFACTURER, product_id=product_id, destination="Return depot", expected_arrival=3000,
        )
        assert product_service.get_product(product_id).destination == "Return depot"

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError) as exc:
            product_service.set_shipping_details(
                caller=MANUFACTURER, product_id=42, destination="Lyon DC", expected_arrival=2000,
            )
        assert exc.value.entity == "Product"


# =============================================================================
# RECALL
# =============================================================================


class TestRecall:

    def test_manufacturer_recalls(self, product_id, clock):
        clock.advance(5)
        product_service.recall_product(caller=MANUFACTURER, product_id=product_id, reason="Seal defect")

        product = product_service.get_product(product_id)
        assert product.status == PRODUCT_STATUS_RECALLED

        checkpoint = checkpoint_service.get_checkpoint(product_id, 1)
        assert checkpoint.checkpoint_type == "recall"
        assert checkpoint.attestation_hash == sha("Seal defect")
        assert checkpoint.verifier == MANUFACTURER
        assert checkpoint.recorded_at == START_TICK + 5

    def test_manufacturer_recalls_after_handing_over_custody(self, product_id):
        transfer_id = transfer_service.initiate_transfer(caller=MANUFACTURER, product_id=product_id, recipient=CARRIER)
        transfer_service.accept_transfer(caller=CARRIER, product_id=product_id, transfer_id=transfer_id)

        product_service.recall_product(caller=MANUFACTURER, product_id=product_id, reason="Seal defect")

        checkpoint = checkpoint_service.get_checkpoint(product_id, 2)
        assert checkpoint.checkpoint_type == "recall"
        assert checkpoint.custodian == CARRIER
        assert checkpoint.verifier == MANUFACTURER

    def test_custodian_cannot_recall(self, product_id):
        transfer_id = transfer_service.initiate_transfer(caller=MANUFACTURER, product_id=product_id, recipient=CARRIER)
        transfer_service.accept_transfer(caller=CARRIER, product_id=product_id, transfer_id=transfer_id)

        with pytest.raises(UnauthorizedError):
            product_service.recall_product(caller=CARRIER, product_id=product_id, reason="Nope")
        assert product_service.get_product(product_id).status != PRODUCT_STATUS_RECALLED

    def test_recall_twice_fails(self, product_id):
        product_service.recall_product(caller=MANUFACTURER, product_id=product_id, reason="Seal defect")
        with pytest.raises(InvalidStateError):
            product_service.recall_product(caller=MANUFACTURER, product_id=product_id, reason="Again")
        assert len(checkpoint_service.list_checkpoints(product_id)) == 2

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            product_service.recall_product(caller=MANUFACTURER, product_id=7, reason="x")


# =============================================================================
# AUTHENTICITY
# =============================================================================


class TestListProducts:

    def test_all_in_id_order(self, db_session):
        ids = [_register(), _register(caller="other-maker"), _register(lot="L300")]
        assert [p.id for p in product_service.list_products()] == ids

    def test_filter_by_status(self, db_session):
        first = _register()
        second = _register(lot="L300")
        product_service.recall_product(caller=MANUFACTURER, product_id=second, reason="Seal defect")

        recalled = product_service.list_products(status=PRODUCT_STATUS_RECALLED)
        assert [p.id for p in recalled] == [second]
        in_transit = product_service.list_products(status=PRODUCT_STATUS_IN_TRANSIT)
        assert [p.id for p in in_transit] == [first]
        assert product_service.list_products(status=PRODUCT_STATUS_DELIVERED) == []

    def test_filter_by_manufacturer_and_custodian(self, db_session):
        mine = _register()
        _register(caller="other-maker")
        transfer_id = transfer_service.initiate_transfer(caller=MANUFACTURER, product_id=mine, recipient=CARRIER)
        transfer_service.accept_transfer(caller=CARRIER, product_id=mine, transfer_id=transfer_id)

        assert [p.id for p in product_service.list_products(manufacturer=MANUFACTURER)] == [mine]
        assert [p.id for p in product_service.list_products(custodian=CARRIER)] == [mine]
        assert product_service.list_products(custodian=MANUFACTURER) == []

    @pytest.mark.parametrize("status", ["LOST", "recalled", ""])
    def test_unknown_status_rejected(self, db_session, status):
        with pytest.raises(ValidationError):
            product_service.list_products(status=status)


class TestVerifyAuthenticity:

    def test_fresh_product_is_authentic(self, product_id):
        summary = product_service.verify_authenticity(product_id)
        assert summary == {
            "product_id": product_id,
            "authentic": True,
            "manufacturer": MANUFACTURER,
            "lot_number": "L100",
            "status": PRODUCT_STATUS_IN_TRANSIT,
            "chain_intact": True,
        }

    def test_recalled_product_is_not_authentic(self, product_id):
        product_service.recall_product(caller=MANUFACTURER, product_id=product_id, reason="Seal defect")
        summary = product_service.verify_authenticity(product_id)
        assert summary["authentic"] is False
        assert summary["chain_intact"] is True
        assert summary["status"] == PRODUCT_STATUS_RECALLED

    def test_tampered_ledger_is_not_authentic(self, product_id, db_session):
        checkpoint = checkpoint_service.get_checkpoint(product_id, 0)
        checkpoint.location = "Somewhere else"
        db_session.commit()

        summary = product_service.verify_authenticity(product_id)
        assert summary["chain_intact"] is False
        assert summary["authentic"] is False

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            product_service.verify_authenticity(99)
