"""Tests for current-status inference and journey metrics."""

from datetime import datetime

import pytest

from schemas import CurrentStatus
from status import days_until_expiry, infer_status, is_expired, journey_days
from tests.factories import batch_record, inventory_record, leg_record

NOW = datetime(2023, 10, 10)


class TestInferStatus:
    def test_expired_short_circuits(self):
        batch = batch_record(expiry_date=datetime(2020, 1, 1))
        assert infer_status(batch, [], [], NOW) is CurrentStatus.EXPIRED
        assert infer_status(batch, [leg_record(status="in-transit")], [inventory_record()], NOW) is CurrentStatus.EXPIRED

    def test_expiry_is_exclusive(self):
        batch = batch_record(expiry_date=NOW)
        assert infer_status(batch, [], [], NOW) is CurrentStatus.WITH_PRODUCER

    def test_retail_dominates_transport(self):
        status = infer_status(batch_record(), [leg_record(status="in-transit")], [inventory_record()], NOW)
        assert status is CurrentStatus.AVAILABLE_AT_RETAIL

    @pytest.mark.parametrize("entry", [
        inventory_record(quantity=0, status="available"),
        inventory_record(quantity=20, status="out_of_stock"),
    ])
    def test_sold_out_when_nothing_available(self, entry):
        status = infer_status(batch_record(), [leg_record(status="in-transit")], [entry], NOW)
        assert status is CurrentStatus.SOLD_OUT

    def test_any_available_entry_counts(self):
        entries = [inventory_record(1, quantity=0), inventory_record(2, quantity=3)]
        assert infer_status(batch_record(), [], entries, NOW) is CurrentStatus.AVAILABLE_AT_RETAIL

    def test_in_transit_beats_delivered(self):
        legs = [leg_record(1, status="delivered"), leg_record(2, arrival=None, status="in-transit")]
        assert infer_status(batch_record(), legs, [], NOW) is CurrentStatus.IN_TRANSIT

    def test_delivered(self):
        assert infer_status(batch_record(), [leg_record(status="delivered")], [], NOW) is CurrentStatus.DELIVERED_TO_RETAIL

    def test_other_leg_statuses_fall_through(self):
        legs = [leg_record(status="cancelled"), leg_record(2, status="pending")]
        assert infer_status(batch_record(), legs, [], NOW) is CurrentStatus.WITH_PRODUCER

    def test_no_downstream_records(self):
        assert infer_status(batch_record(), [], [], NOW) is CurrentStatus.WITH_PRODUCER


class TestJourneyDays:
    def test_latest_arrival(self):
        legs = [
            leg_record(1, arrival=datetime(2023, 10, 3)),
            leg_record(2, arrival=None, status="in-transit"),
            leg_record(3, arrival=datetime(2023, 10, 5, 1)),
        ]
        # 4 days and an hour rounds up
        assert journey_days(datetime(2023, 10, 1), legs, NOW) == 5

    def test_single_delivered_leg(self):
        assert journey_days(datetime(2023, 10, 1), [leg_record()], NOW) == 2

    def test_uses_now_without_arrivals(self):
        legs = [leg_record(arrival=None, status="in-transit")]
        assert journey_days(datetime(2023, 10, 1), legs, NOW) == 9
        assert journey_days(datetime(2023, 10, 1), [], NOW) == 9

    def test_future_harvest_clamps_to_zero(self):
        assert journey_days(datetime(2023, 12, 1), [], NOW) == 0

    def test_arrival_before_harvest_clamps_to_zero(self):
        assert journey_days(datetime(2023, 10, 5), [leg_record(arrival=datetime(2023, 10, 3))], NOW) == 0

    def test_missing_harvest(self):
        assert journey_days(None, [leg_record()], NOW) == 0


def test_days_until_expiry_and_is_expired():
    batch = batch_record(expiry_date=datetime(2023, 10, 12, 6))
    assert days_until_expiry(batch, NOW) == 3
    assert not is_expired(batch, NOW)

    past = batch_record(expiry_date=datetime(2023, 10, 8))
    assert days_until_expiry(past, NOW) == -2
    assert is_expired(past, NOW)
