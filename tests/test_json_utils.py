"""Tests for JSON helpers"""

from datetime import datetime, timezone

import pytest

from pronestheus.json_utils import dig, dig_float, dig_str, parse_rfc3339


class TestDig:
    def test_nested_lookup(self):
        doc = {"a": {"b": {"c": 3}}}
        assert dig(doc, "a", "b", "c") == 3

    def test_dotted_keys_are_literal(self):
        doc = {"traits": {"sdm.devices.traits.Info": {"customName": "Hall"}}}
        assert dig(doc, "traits", "sdm.devices.traits.Info", "customName") == "Hall"

    def test_missing_returns_default(self):
        assert dig({"a": {}}, "a", "b") is None
        assert dig({"a": {}}, "a", "b", default="x") == "x"

    def test_non_dict_step_returns_default(self):
        assert dig({"a": [1, 2]}, "a", "b") is None
        assert dig("text", "a") is None

    def test_explicit_null_is_returned(self):
        assert dig({"a": None}, "a", default="x") is None


class TestTypedDig:
    def test_dig_float(self):
        assert dig_float({"t": 21}, "t") == 21.0
        assert dig_float({"t": "21.5"}, "t") == 21.5
        assert dig_float({"t": "warm"}, "t") is None
        assert dig_float({"t": True}, "t") is None
        assert dig_float({}, "t") is None

    @pytest.mark.parametrize("value", ["nan", "inf", "-inf", float("nan"), float("inf")])
    def test_dig_float_rejects_non_finite(self, value):
        assert dig_float({"t": value}, "t") is None

    def test_dig_str(self):
        assert dig_str({"n": "x"}, "n") == "x"
        assert dig_str({"n": 5}, "n") == "5"
        assert dig_str({}, "n") == ""


class TestParseRfc3339:
    def test_zulu(self):
        assert parse_rfc3339("2023-01-02T03:04:05Z") == datetime(
            2023, 1, 2, 3, 4, 5, tzinfo=timezone.utc
        )

    def test_nanoseconds_are_truncated(self):
        parsed = parse_rfc3339("2023-01-02T03:04:05.123456789Z")
        assert parsed.microsecond == 123456

    def test_offset_converted_to_utc(self):
        parsed = parse_rfc3339("2023-01-02T05:04:05+02:00")
        assert parsed == datetime(2023, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_rfc3339("yesterday")

    def test_missing_offset(self):
        with pytest.raises(ValueError):
            parse_rfc3339("2023-01-02T03:04:05")
