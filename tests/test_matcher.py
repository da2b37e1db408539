"""Matching rules: capacity, service direction, stop order and time window."""

from __future__ import annotations

import pytest

from busbot.matcher import match
from busbot.models import Query, Service
from tests.conftest import make_vehicle


def make_query(**overrides) -> Query:
    values = dict(start="Station A", end="Station B", time="07:30", pax=1, need_both=False)
    values.update(overrides)
    return Query(**values)


class TestCapacity:
    def test_exact_capacity_matches(self) -> None:
        bus = make_vehicle(capacity=3)
        assert match(make_query(pax=3), [bus]) == [bus]

    def test_over_capacity_rejected(self) -> None:
        assert match(make_query(pax=4), [make_vehicle(capacity=3)]) == []

    def test_full_bus_never_matches(self) -> None:
        assert match(make_query(pax=1), [make_vehicle(capacity=0)]) == []


class TestService:
    def test_need_both_requires_both(self) -> None:
        assert match(make_query(need_both=True), [make_vehicle(service=Service.UP)]) == []
        assert match(make_query(need_both=True), [make_vehicle(service=Service.DOWN)]) == []

    @pytest.mark.parametrize("service", list(Service))
    def test_one_way_request_accepts_any_service(self, service: Service) -> None:
        bus = make_vehicle(service=service)
        assert match(make_query(need_both=False), [bus]) == [bus]


class TestRoute:
    def test_forward_direction_matches(self) -> None:
        bus = make_vehicle(route=["A", "B", "C"], times=["07:30"])
        assert match(make_query(start="A", end="C"), [bus]) == [bus]

    def test_reverse_direction_never_matches(self) -> None:
        bus = make_vehicle(route=["A", "B", "C"], times=["07:30"])
        assert match(make_query(start="C", end="A"), [bus]) == []

    def test_stop_names_are_case_insensitive(self) -> None:
        bus = make_vehicle(route=["Station A", "Station B"])
        assert match(make_query(start="station a", end="STATION B"), [bus]) == [bus]

    def test_partial_stop_name_does_not_match(self) -> None:
        assert match(make_query(start="Station"), [make_vehicle()]) == []

    def test_unknown_stop(self) -> None:
        assert match(make_query(end="Airport"), [make_vehicle()]) == []

    def test_same_start_and_end_does_not_match(self) -> None:
        assert match(make_query(end="Station A"), [make_vehicle()]) == []

    def test_duplicate_stop_resolves_to_first_occurrence(self) -> None:
        # B -> A is reachable on the loop, but A resolves to index 0
        bus = make_vehicle(route=["A", "B", "A", "C"], times=["07:30"])
        assert match(make_query(start="B", end="A"), [bus]) == []
        assert match(make_query(start="A", end="C"), [bus]) == [bus]


class TestTimeWindow:
    @pytest.mark.parametrize("scheduled", ["07:00", "08:00", "07:30"])
    def test_thirty_minutes_either_side_matches(self, scheduled: str) -> None:
        bus = make_vehicle(times=[scheduled])
        assert match(make_query(time="07:30"), [bus]) == [bus]

    @pytest.mark.parametrize("scheduled", ["06:59", "08:01"])
    def test_thirty_one_minutes_does_not(self, scheduled: str) -> None:
        assert match(make_query(time="07:30"), [make_vehicle(times=[scheduled])]) == []

    def test_any_scheduled_time_is_enough(self) -> None:
        bus = make_vehicle(times=["05:00", "07:50", "18:00"])
        assert match(make_query(time="07:30"), [bus]) == [bus]

    def test_unparsable_times_are_skipped(self) -> None:
        bus = make_vehicle(times=["soon", "7.45", "07:40"])
        assert match(make_query(time="07:30"), [bus]) == [bus]


class TestPurity:
    def test_order_preserved_and_repeatable(self) -> None:
        roster = [
            make_vehicle("bus-3", times=["07:40"]),
            make_vehicle("bus-1", times=["09:00"]),
            make_vehicle("bus-2", times=["07:20"]),
        ]
        snapshot = [v.model_copy(deep=True) for v in roster]
        first = match(make_query(), roster)
        second = match(make_query(), roster)
        assert [v.id for v in first] == ["bus-3", "bus-2"]
        assert first == second
        assert roster == snapshot

    def test_empty_roster(self) -> None:
        assert match(make_query(), []) == []
