"""Tests for the tour catalog and the time slot grid."""

import pytest

from tourbook.scheduling.catalog import (
    TimeSlotCatalog,
    get_all_tours,
    get_tour_details,
    is_known_tour,
)


class TestTourCatalog:
    def test_known_tour(self):
        assert is_known_tour("sunset")
        assert not is_known_tour("submarine")
        assert not is_known_tour(None)

    def test_tour_details(self):
        details = get_tour_details(" Furnas ")
        assert details["id"] == "furnas"
        assert details["duration"] == 60

    def test_unknown_tour_details(self):
        assert get_tour_details("submarine") is None

    def test_all_tours(self):
        tours = get_all_tours()
        assert len(tours) == 6
        assert {"id", "name", "duration", "price"} <= set(tours[0])


class TestTimeSlotCatalog:
    def test_default_grid(self):
        catalog = TimeSlotCatalog()
        assert catalog.slots == ["09:00", "10:30", "12:00", "14:00", "15:30", "17:00", "18:30"]
        assert catalog.opening_time == "08:00"
        assert catalog.closing_time == "20:00"

    def test_slots_are_sorted_and_normalized(self):
        catalog = TimeSlotCatalog(["14:00", "9:00", "09:00", "10:30:00"])
        assert catalog.slots == ["09:00", "10:30", "14:00"]

    def test_index(self, catalog):
        assert catalog.index("09:00") == 0
        assert catalog.index("18:30") == 6
        assert catalog.index("11:00") == -1

    def test_index_of_malformed_time(self, catalog):
        assert catalog.index("25:00") == -1

    def test_slots_between_inclusive(self, catalog):
        assert catalog.slots_between("10:30", "14:00") == ["10:30", "12:00", "14:00"]

    def test_slots_between_single(self, catalog):
        assert catalog.slots_between("12:00", "12:00") == ["12:00"]

    def test_slots_between_backwards(self, catalog):
        assert catalog.slots_between("14:00", "10:30") == []

    def test_slots_between_off_grid(self, catalog):
        assert catalog.slots_between("10:00", "14:00") == []

    def test_contains_and_len(self, catalog):
        assert "15:30" in catalog
        assert "15:31" not in catalog
        assert 930 not in catalog
        assert len(catalog) == 7

    def test_generated_grid(self):
        catalog = TimeSlotCatalog.generated("08:00", "12:00", 90)
        assert catalog.slots == ["08:00", "09:30", "11:00"]
        assert catalog.closing_time == "12:00"

    def test_generated_rejects_negative_interval(self):
        with pytest.raises(ValueError):
            TimeSlotCatalog.generated("08:00", "12:00", -5)
