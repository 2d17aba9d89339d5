"""Tests for the frozen data records."""

import dataclasses

import pytest

from pulsechart.models import NOT_FOUND, ArtistSnapshot, Classification, MomentumResult


def test_snapshots_are_hashable(snap):
    first = snap(day=0, popularity=50, social={"tiktok": 10})
    same = snap(day=0, popularity=50, social={"tiktok": 10})
    later = snap(day=1, popularity=50)

    assert hash(first) == hash(same)
    assert {first, same, later} == {first, later}


def test_snapshot_differing_only_in_mappings_is_not_equal(snap):
    a = snap(day=0, social={"tiktok": 10})
    b = snap(day=0, social={"tiktok": 11})

    assert a != b
    assert len({a, b}) == 2


def test_snapshot_is_immutable(snap):
    with pytest.raises(dataclasses.FrozenInstanceError):
        snap(day=0).popularity = 3


def test_momentum_results_are_hashable(snap):
    result = MomentumResult(
        artist_id="a1",
        momentum_score=1.0,
        window_days=14,
        classification=Classification.RISING,
        recent_captured_at=snap(day=14).captured_at,
        baseline_captured_at=snap(day=0).captured_at,
        per_platform_delta_pct={"tiktok": 0.5},
    )

    assert result in {result}


def test_snapshot_dict_round_trip_keeps_absent_fields(snap):
    original = snap(day=3, popularity=0, genres=["pop"])

    assert ArtistSnapshot.from_dict(original.to_dict()) == original


def test_not_found_is_a_falsy_singleton():
    assert not NOT_FOUND
    assert type(NOT_FOUND)() is NOT_FOUND
