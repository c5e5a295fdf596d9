"""
Unit tests for delivery stop de-duplication.

Run with: pytest tests/test_stop_dedup.py -v
"""

from builders import make_load
from tourledger.services.stop_dedup import (
    dedupe_trip_loads,
    delivery_count,
    delivery_stops,
    distinct_delivery_stops,
    is_delivery_stop,
)


class TestDeliveryStops:
    """Which stops count as deliveries."""

    def test_warehouse_prefix_excluded(self):
        """Stops starting with the warehouse prefix are not deliveries."""
        load = make_load("L1", "MSP1", "DLH4", "MSP1")
        assert delivery_stops(load, "MSP") == ["DLH4"]

    def test_prefix_is_case_insensitive(self):
        assert not is_delivery_stop("msp5", "MSP")
        assert is_delivery_stop("STP2", "msp")

    def test_bobtail_has_no_deliveries(self):
        """Bobtail loads count zero regardless of their stops."""
        load = make_load("L1", "DLH4", "STP2", bobtail=True)
        assert delivery_count(load, "MSP") == 0

    def test_blank_stops_ignored(self):
        load = make_load("L1", "  ", "DLH4", "")
        assert delivery_stops(load, "MSP") == ["DLH4"]

    def test_empty_prefix_counts_every_stop(self):
        load = make_load("L1", "MSP1", "DLH4")
        assert delivery_count(load, "") == 2


class TestDedupeTripLoads:
    """First claim wins across a trip's loads."""

    def test_empty_input(self):
        result = dedupe_trip_loads([], "MSP")
        assert result.visible == []
        assert result.delivery_count == 0

    def test_load_with_only_repeated_stops_hidden(self):
        """A load whose every delivery was claimed by a bigger load is not visible."""
        big = make_load("A", "MSP1", "D1", "D2")
        repeat = make_load("B", "D1")
        extra = make_load("C", "D2", "D3")

        result = dedupe_trip_loads([big, repeat, extra], "MSP")

        assert [load.load_id for load in result.visible_loads] == ["A", "C"]
        assert [claim.claimed_stops for claim in result.visible] == [("D1", "D2"), ("D3",)]
        assert result.delivery_count == 3

    def test_larger_load_claims_first(self):
        """Loads are walked in descending delivery count, not file order."""
        small = make_load("S", "D1")
        large = make_load("L", "D1", "D2", "D3")

        result = dedupe_trip_loads([small, large], "MSP")

        assert [load.load_id for load in result.visible_loads] == ["L"]

    def test_ties_keep_file_order(self):
        first = make_load("first", "D1", "D2")
        second = make_load("second", "D2", "D1")

        result = dedupe_trip_loads([first, second], "MSP")

        assert [load.load_id for load in result.visible_loads] == ["first"]

    def test_names_compared_trimmed_and_uppercased(self):
        one = make_load("A", "dlh4 ")
        two = make_load("B", "DLH4")

        result = dedupe_trip_loads([one, two], "MSP")

        assert result.delivery_count == 1
        assert len(result.visible) == 1

    def test_bobtail_never_visible(self):
        result = dedupe_trip_loads([make_load("A", "D1", bobtail=True)], "MSP")
        assert result.visible == []
        assert result.delivery_count == 0

    def test_claimed_stops_conserve_distinct_deliveries(self):
        """Sum of claimed stops equals the distinct delivery stops of the trip."""
        loads = [
            make_load("A", "MSP1", "D1", "D2", "MSP1"),
            make_load("B", "D2", "D3"),
            make_load("C", "MSP2", "D3", "D4", "D5"),
            make_load("D", "D1", bobtail=True),
            make_load("E", "d5", "D6"),
        ]

        result = dedupe_trip_loads(loads, "MSP")

        claimed = sum(claim.claimed_count for claim in result.visible)
        assert claimed == len(distinct_delivery_stops(loads, "MSP")) == result.delivery_count == 6
