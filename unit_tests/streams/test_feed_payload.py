"""Tests for lenient parsing of feed payloads."""

from livechart.streams.models import FeedPayload


def test_defaults_for_missing_fields() -> None:
    payload = FeedPayload.model_validate({})
    assert payload.rows == []
    assert payload.horizons is None
    assert payload.unit == ""
    assert payload.max_epoch_ms is None


def test_non_list_rows_become_empty() -> None:
    payload = FeedPayload.model_validate({"rows": {"epoch_ms": 1}})
    assert payload.rows == []


def test_rows_are_passed_through_unvalidated() -> None:
    payload = FeedPayload.model_validate({"rows": [{"epoch_ms": 1}, "junk"]})
    assert payload.rows == [{"epoch_ms": 1}, "junk"]


def test_horizons_keep_numeric_entries() -> None:
    payload = FeedPayload.model_validate({"horizons": ["250", "x", 500.0, None]})
    assert payload.horizons == [250, 500]


def test_empty_horizons_mean_infer() -> None:
    assert FeedPayload.model_validate({"horizons": []}).horizons is None
    assert FeedPayload.model_validate({"horizons": "250"}).horizons is None


def test_unit_none_becomes_empty_string() -> None:
    assert FeedPayload.model_validate({"unit": None}).unit == ""
    assert FeedPayload.model_validate({"unit": "dec"}).unit == "dec"


def test_unusable_max_epoch_is_dropped() -> None:
    assert FeedPayload.model_validate({"max_epoch_ms": "abc"}).max_epoch_ms is None
    assert FeedPayload.model_validate({"max_epoch_ms": -1}).max_epoch_ms is None
    assert FeedPayload.model_validate({"max_epoch_ms": "5000"}).max_epoch_ms == 5000.0


def test_unknown_fields_are_ignored() -> None:
    payload = FeedPayload.model_validate({"rows": [], "symbol": "ES", "extra": 1})
    assert payload.rows == []
