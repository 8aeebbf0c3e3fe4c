"""
Custody transfer workflow tests.

Verifies:
- PENDING -> COMPLETED / REJECTED / CANCELLED, each final
- Only the recipient accepts or rejects, only the initiator cancels
- The custodian changes if and only if an accept succeeds
- Accept writes a "transfer" checkpoint in the same unit of work
"""

import pytest

from custody.errors import InvalidStateError, NotFoundError, UnauthorizedError, ValidationError
from custody.models.custody import (
    TRANSFER_STATUS_CANCELLED,
    TRANSFER_STATUS_COMPLETED,
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUS_REJECTED,
)
from custody.services import checkpoint_service, product_service, transfer_service

from tests.conftest import CARRIER, MANUFACTURER, RETAILER, STRANGER


def _initiate(product_id, caller=MANUFACTURER, recipient=CARRIER, conditions=None):
    return transfer_service.initiate_transfer(
        caller=caller, product_id=product_id, recipient=recipient, conditions=conditions,
    )


def _custodian(product_id):
    return product_service.get_product(product_id).current_custodian


class TestInitiateTransfer:

    def test_creates_pending_transfer(self, product_id, clock):
        clock.advance(3)
        transfer_id = _initiate(product_id, conditions="Keep at 2-8C")
        assert transfer_id == 0

        transfer = transfer_service.get_transfer(product_id, transfer_id)
        assert transfer.status == TRANSFER_STATUS_PENDING
        assert transfer.initiator == MANUFACTURER
        assert transfer.recipient == CARRIER
        assert transfer.initiated_at == 1003
        assert transfer.completed_at is None
        assert transfer.conditions == "Keep at 2-8C"

    def test_ids_are_sequential_per_product(self, product_id):
        assert [_initiate(product_id) for _ in range(3)] == [0, 1, 2]

    def test_initiating_does_not_move_custody(self, product_id):
        _initiate(product_id)
        assert _custodian(product_id) == MANUFACTURER

    def test_only_custodian_initiates(self, product_id):
        with pytest.raises(UnauthorizedError):
            _initiate(product_id, caller=STRANGER)

    def test_recalled_product(self, product_id):
        product_service.recall_product(caller=MANUFACTURER, product_id=product_id, reason="Seal defect")
        with pytest.raises(InvalidStateError):
            _initiate(product_id)

    def test_cannot_transfer_to_self(self, product_id):
        with pytest.raises(ValidationError):
            _initiate(product_id, recipient=MANUFACTURER)

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            _initiate(12)


class TestAcceptTransfer:

    def test_recipient_becomes_custodian(self, product_id, clock):
        transfer_id = _initiate(product_id, conditions="Keep at 2-8C")
        clock.advance(7)
        transfer = transfer_service.accept_transfer(caller=CARRIER, product_id=product_id, transfer_id=transfer_id)

        assert transfer.status == TRANSFER_STATUS_COMPLETED
        assert transfer.completed_at == 1007
        assert _custodian(product_id) == CARRIER
        assert product_service.get_product(product_id).manufacturer == MANUFACTURER

    def test_writes_transfer_checkpoint(self, product_id):
        transfer_id = _initiate(product_id, conditions="Keep at 2-8C")
        transfer_service.accept_transfer(
            caller=CARRIER, product_id=product_id, transfer_id=transfer_id, location="Hub 9",
        )

        checkpoint = checkpoint_service.get_checkpoint(product_id, 1)
        assert checkpoint.checkpoint_type == "transfer"
        assert checkpoint.custodian == CARRIER
        assert checkpoint.verifier == CARRIER
        assert checkpoint.location == "Hub 9"
        assert checkpoint.observations == "Keep at 2-8C"

    def test_default_handover_location(self, product_id):
        transfer_id = _initiate(product_id)
        transfer_service.accept_transfer(caller=CARRIER, product_id=product_id, transfer_id=transfer_id)
        assert checkpoint_service.get_checkpoint(product_id, 1).location == transfer_service.TRANSFER_LOCATION

    def test_only_recipient_accepts(self, product_id):
        transfer_id = _initiate(product_id)
        for caller in (MANUFACTURER, STRANGER):
            with pytest.raises(UnauthorizedError):
                transfer_service.accept_transfer(caller=caller, product_id=product_id, transfer_id=transfer_id)
        assert _custodian(product_id) == MANUFACTURER
        assert transfer_service.get_transfer(product_id, transfer_id).status == TRANSFER_STATUS_PENDING

    def test_recalled_product_blocks_accept(self, product_id):
        transfer_id = _initiate(product_id)
        product_service.recall_product(caller=MANUFACTURER, product_id=product_id, reason="Seal defect")

        with pytest.raises(InvalidStateError):
            transfer_service.accept_transfer(caller=CARRIER, product_id=product_id, transfer_id=transfer_id)

        assert _custodian(product_id) == MANUFACTURER
        assert transfer_service.get_transfer(product_id, transfer_id).status == TRANSFER_STATUS_PENDING
        assert len(checkpoint_service.list_checkpoints(product_id)) == 2

    def test_stale_offer_after_custody_moved(self, product_id):
        to_carrier = _initiate(product_id, recipient=CARRIER)
        to_retailer = _initiate(product_id, recipient=RETAILER)
        transfer_service.accept_transfer(caller=CARRIER, product_id=product_id, transfer_id=to_carrier)

        with pytest.raises(InvalidStateError):
            transfer_service.accept_transfer(caller=RETAILER, product_id=product_id, transfer_id=to_retailer)
        assert _custodian(product_id) == CARRIER

    def test_unknown_transfer(self, product_id):
        with pytest.raises(NotFoundError) as exc:
            transfer_service.accept_transfer(caller=CARRIER, product_id=product_id, transfer_id=4)
        assert exc.value.entity == "Transfer"


class TestRejectAndCancel:

    def test_recipient_rejects_with_reason(self, product_id, clock):
        transfer_id = _initiate(product_id, conditions="Keep at 2-8C")
        clock.advance(2)
        transfer = transfer_service.reject_transfer(
            caller=CARRIER, product_id=product_id, transfer_id=transfer_id, reason="Truck full",
        )
        assert transfer.status == TRANSFER_STATUS_REJECTED
        assert transfer.conditions == "Truck full"
        assert transfer.completed_at == 1002
        assert _custodian(product_id) == MANUFACTURER

    def test_initiator_cannot_reject(self, product_id):
        transfer_id = _initiate(product_id)
        with pytest.raises(UnauthorizedError):
            transfer_service.reject_transfer(
                caller=MANUFACTURER, product_id=product_id, transfer_id=transfer_id, reason="x",
            )

    def test_initiator_cancels(self, product_id):
        transfer_id = _initiate(product_id, conditions="Keep at 2-8C")
        transfer = transfer_service.cancel_transfer(caller=MANUFACTURER, product_id=product_id, transfer_id=transfer_id)
        assert transfer.status == TRANSFER_STATUS_CANCELLED
        assert transfer.conditions == "Keep at 2-8C"
        assert transfer.completed_at is not None

    def test_recipient_cannot_cancel(self, product_id):
        transfer_id = _initiate(product_id)
        with pytest.raises(UnauthorizedError):
            transfer_service.cancel_transfer(caller=CARRIER, product_id=product_id, transfer_id=transfer_id)

    def test_reject_and_cancel_write_no_checkpoint(self, product_id):
        first = _initiate(product_id)
        second = _initiate(product_id)
        transfer_service.reject_transfer(caller=CARRIER, product_id=product_id, transfer_id=first, reason="No")
        transfer_service.cancel_transfer(caller=MANUFACTURER, product_id=product_id, transfer_id=second)
        assert len(checkpoint_service.list_checkpoints(product_id)) == 1


class TestTerminalStates:

    def _terminal(self, product_id, status):
        transfer_id = _initiate(product_id)
        if status == TRANSFER_STATUS_COMPLETED:
            transfer_service.accept_transfer(caller=CARRIER, product_id=product_id, transfer_id=transfer_id)
        elif status == TRANSFER_STATUS_REJECTED:
            transfer_service.reject_transfer(caller=CARRIER, product_id=product_id, transfer_id=transfer_id, reason="No")
        else:
            transfer_service.cancel_transfer(caller=MANUFACTURER, product_id=product_id, transfer_id=transfer_id)
        return transfer_id

    @pytest.mark.parametrize(
        "status",
        [TRANSFER_STATUS_COMPLETED, TRANSFER_STATUS_REJECTED, TRANSFER_STATUS_CANCELLED],
    )
    def test_every_follow_up_fails_and_changes_nothing(self, product_id, status):
        transfer_id = self._terminal(product_id, status)
        before = transfer_service.get_transfer(product_id, transfer_id).to_dict()
        custodian_before = _custodian(product_id)

        with pytest.raises(InvalidStateError):
            transfer_service.accept_transfer(caller=CARRIER, product_id=product_id, transfer_id=transfer_id)
        with pytest.raises(InvalidStateError):
            transfer_service.reject_transfer(caller=CARRIER, product_id=product_id, transfer_id=transfer_id, reason="x")
        with pytest.raises(InvalidStateError):
            transfer_service.cancel_transfer(caller=MANUFACTURER, product_id=product_id, transfer_id=transfer_id)

        assert transfer_service.get_transfer(product_id, transfer_id).to_dict() == before
        assert _custodian(product_id) == custodian_before


class TestListTransfers:

    def test_filters_by_status(self, product_id):
        first = _initiate(product_id)
        _initiate(product_id)
        transfer_service.cancel_transfer(caller=MANUFACTURER, product_id=product_id, transfer_id=first)

        assert [t.transfer_id for t in transfer_service.list_transfers(product_id)] == [0, 1]
        pending = transfer_service.list_transfers(product_id, status=TRANSFER_STATUS_PENDING)
        assert [t.transfer_id for t in pending] == [1]

    def test_rejects_unknown_status(self, product_id):
        with pytest.raises(ValidationError):
            transfer_service.list_transfers(product_id, status="LOST")
