"""Unit tests for production-mix share arithmetic."""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from ghgcalc.allocation.production_mix import (
    SHARE_TOLERANCE,
    distribute,
    exceeds_full_share,
    is_complete,
    prospective_total,
    summarize,
    total_share,
    weighted_average_intensity,
)
from ghgcalc.errors import AllocationError
from ghgcalc.models import ProductionMixAllocation


def _allocation(footprint_id, share: str, intensity: str | None = None, facility_id=None):
    return ProductionMixAllocation(
        footprint_id=footprint_id,
        facility_id=facility_id or uuid4(),
        production_share=Decimal(share),
        facility_intensity=Decimal(intensity) if intensity is not None else None,
    )


@pytest.fixture
def footprint_id():
    return uuid4()


class TestToleranceBand:
    @pytest.mark.parametrize(
        ("total", "rejected"),
        [("1.0", False), ("1.00005", False), ("1.0001", False), ("1.0002", True)],
    )
    def test_exceeds_full_share(self, total, rejected):
        assert exceeds_full_share(Decimal(total)) is rejected

    @pytest.mark.parametrize(
        ("total", "complete"),
        [("1", True), ("0.99995", True), ("0.9999", True), ("0.9998", False), ("1.0002", False)],
    )
    def test_is_complete(self, total, complete):
        assert is_complete(Decimal(total)) is complete

    def test_tolerance_constant(self):
        assert SHARE_TOLERANCE == Decimal("0.0001")


def test_prospective_total_replaces_existing_facility_row(footprint_id):
    facility_id = uuid4()
    existing = [
        _allocation(footprint_id, "0.6", facility_id=facility_id),
        _allocation(footprint_id, "0.3"),
    ]

    assert prospective_total(existing, facility_id, Decimal("0.7")) == Decimal("1.0")
    assert prospective_total(existing, uuid4(), Decimal("0.2")) == Decimal("1.1")


def test_total_share(footprint_id):
    rows = [_allocation(footprint_id, "0.5"), _allocation(footprint_id, "0.25")]
    assert total_share(rows) == Decimal("0.75")
    assert total_share([]) == Decimal("0")


def test_weighted_average_intensity(footprint_id):
    rows = [
        _allocation(footprint_id, "0.6", intensity="10"),
        _allocation(footprint_id, "0.4", intensity="20"),
        _allocation(footprint_id, "0", intensity=None),
    ]
    assert weighted_average_intensity(rows) == Decimal("14.0")


def test_distribute_by_share(footprint_id):
    a = _allocation(footprint_id, "0.75")
    b = _allocation(footprint_id, "0.25")

    split = distribute(Decimal("200"), [a, b])

    assert split == {a.facility_id: Decimal("150.00"), b.facility_id: Decimal("50.00")}


def test_summarize(footprint_id):
    rows = [_allocation(footprint_id, "0.5", "4"), _allocation(footprint_id, "0.49995", "4")]

    summary = summarize(footprint_id, rows)

    assert summary.is_complete
    assert summary.total_share == Decimal("0.99995")
    assert summary.facility_count == 2
    assert summary.footprint_id == footprint_id


def test_share_outside_unit_interval_rejected(footprint_id):
    with pytest.raises(ValueError, match="production_share"):
        _allocation(footprint_id, "1.2")


def test_allocation_error_message(footprint_id):
    error = AllocationError(footprint_id, Decimal("1.0002"))

    assert isinstance(error, ValueError)
    assert error.prospective_total == Decimal("1.0002")
    assert "cannot exceed 100%" in str(error)
    assert "100.02" in str(error)
