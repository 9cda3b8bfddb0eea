"""
Tests for the snapshot codec.

The document produced by encode_state must survive JSON serialization
and decode back to an equal FullState, including Decimal prices, aware
datetimes, nested part usages and invoice line items.
"""

import json
from decimal import Decimal

import pytest

from shop_kernel.domain.codec import (
    SCHEMA_VERSION,
    SnapshotFormatError,
    decode_employee,
    decode_state,
    encode_employee,
    encode_state,
)
from shop_kernel.domain.entities import FullState, TransactionType


@pytest.fixture
def busy_state(store, ledger, tracker, repairs, billing):
    """A store snapshot touching every collection."""
    tx = ledger.request_transaction("P002", 10, TransactionType.STOCK_INTAKE, "E001")
    ledger.approve_transaction(tx.id, "E001")
    assignment = tracker.checkout("ASSET-1", "E002", notes="field trip")
    tracker.checkin(assignment.id)
    tracker.checkout("ASSET-1", "E001")
    job = repairs.open_job("Jane Doe", "iPhone 15", "cracked screen", labor_cost="45.50")
    repairs.start(job.id)
    repairs.consume_part(job.id, "P001", 1, "E002", approver_id="E001")
    repairs.consume_part(job.id, "P002", 2, "E002")
    repairs.complete(job.id)
    invoice = billing.generate_invoice(job.id)
    billing.record_payment(invoice.id, "100")
    return store.snapshot()


class TestStateRoundTrip:

    def test_json_round_trip_is_lossless(self, busy_state):
        document = json.loads(json.dumps(encode_state(busy_state)))
        assert decode_state(document) == busy_state

    def test_document_shape(self, busy_state):
        document = encode_state(busy_state)
        assert document["schema_version"] == SCHEMA_VERSION
        assert document["site"] == {"site_name": "MobiFix", "currency": "$"}
        part = next(p for p in document["parts"] if p["id"] == "P001")
        assert part["sale_price"] == "249"
        assert isinstance(part["stock"], int)

    def test_prices_stay_decimal(self, busy_state):
        decoded = decode_state(encode_state(busy_state))
        invoice = decoded.invoices[0]
        assert isinstance(invoice.total, Decimal)
        assert invoice.amount_paid == Decimal("100.00")

    def test_empty_state(self):
        assert decode_state(encode_state(FullState())) == FullState()


class TestDecodeErrors:

    def test_not_an_object(self):
        with pytest.raises(SnapshotFormatError):
            decode_state(["employees"])

    def test_unknown_schema_version(self):
        document = encode_state(FullState())
        document["schema_version"] = SCHEMA_VERSION + 1
        with pytest.raises(SnapshotFormatError, match="schema_version"):
            decode_state(document)

    def test_missing_collection(self):
        document = encode_state(FullState())
        del document["parts"]
        with pytest.raises(SnapshotFormatError, match="parts"):
            decode_state(document)

    def test_bad_enum_value(self, seed_state):
        document = encode_state(seed_state)
        document["assets"][0]["status"] = "Lost"
        with pytest.raises(SnapshotFormatError, match="assets"):
            decode_state(document)

    def test_negative_stock_rejected(self, seed_state):
        document = encode_state(seed_state)
        document["parts"][0]["stock"] = -4
        with pytest.raises(SnapshotFormatError):
            decode_state(document)


class TestEmployeeCodec:

    def test_round_trip(self, seed_state):
        employee = seed_state.employees[0]
        assert decode_employee(encode_employee(employee)) == employee

    def test_invalid_record(self):
        with pytest.raises(SnapshotFormatError):
            decode_employee({"id": "E9"})
