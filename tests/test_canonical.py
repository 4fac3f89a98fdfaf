"""
Tests for canonical form and digest derivation.

The canonical bytes are a wire format shared with independently built
clients, so most assertions pin exact strings.
"""

import pytest

from intelliroad.canonical import (
    CANONICAL_FORM_VERSION,
    ZERO_DIGEST,
    canonical_json,
    canonicalize,
    derive_digest,
    digest_observation,
    digest_to_bytes,
    digests_equal,
    format_number,
    format_string,
    is_empty_digest,
    is_valid_digest,
)
from intelliroad.models import Feature, Observation

from conftest import REFERENCE_CANONICAL, REFERENCE_DIGEST

TS = "2024-01-01T00:00:00.000Z"


class TestReferenceVector:

    def test_canonical_bytes(self):
        out = canonicalize(10.762622, 106.660172, TS, [Feature("pothole", 0.87)])
        assert out == REFERENCE_CANONICAL.encode("utf-8")

    def test_digest(self):
        out = derive_digest(canonicalize(10.762622, 106.660172, TS, [Feature("pothole", 0.87)]))
        assert out == REFERENCE_DIGEST

    def test_empty_features(self):
        out = derive_digest(canonicalize(10.762622, 106.660172, TS, []))
        assert out == "0x6da1f1dec0d0c7add67f633e5ace09c6ea134c714f9cc385343d9be43fea72d2"

    def test_version_is_pinned(self):
        assert CANONICAL_FORM_VERSION == 1


class TestDeterminism:

    def test_same_input_same_digest(self):
        obs = Observation(1.5, -2.25, TS, (Feature("crack", 0.5, (1.0, 2.0, 3.0, 4.0)),))
        assert digest_observation(obs) == digest_observation(obs)

    def test_feature_order_changes_digest(self):
        a, b = Feature("pothole", 0.87), Feature("traffic_sign", 0.78)
        first = derive_digest(canonicalize(1.0, 2.0, TS, [a, b]))
        second = derive_digest(canonicalize(1.0, 2.0, TS, [b, a]))
        assert first != second

    def test_absent_optional_equals_explicit_none(self):
        assert canonicalize(1.0, 2.0, TS, [Feature("a")]) == canonicalize(
            1.0, 2.0, TS, [Feature("a", confidence=None, bounding_box=None)]
        )

    def test_absent_fields_are_omitted_not_null(self):
        text = canonical_json(1.0, 2.0, TS, [Feature("a")])
        assert text == '{"lat":1,"lng":2,"timestamp":"2024-01-01T00:00:00.000Z","features":[{"type":"a"}]}'
        assert "null" not in text

    def test_field_presence_changes_digest(self):
        without = derive_digest(canonicalize(1.0, 2.0, TS, [Feature("a")]))
        with_conf = derive_digest(canonicalize(1.0, 2.0, TS, [Feature("a", 0.0)]))
        assert without != with_conf

    def test_timestamp_is_opaque(self):
        # Same instant, different text: different digest.
        a = derive_digest(canonicalize(1.0, 2.0, "2024-01-01T00:00:00Z", []))
        b = derive_digest(canonicalize(1.0, 2.0, "2024-01-01T00:00:00.000Z", []))
        assert a != b

    def test_bbox_layout(self):
        text = canonical_json(0.5, 0.5, TS, [Feature("sign", 0.9, (10, 20.5, 30, 40))])
        assert text.endswith('"features":[{"type":"sign","confidence":0.9,"bbox":[10,20.5,30,40]}]}')


class TestNumberFormat:

    @pytest.mark.parametrize("value, expected", [
        (1.0, "1"),
        (100, "100"),
        (-0.0, "0"),
        (0.87, "0.87"),
        (-33.8688, "-33.8688"),
        (0.000001, "0.000001"),
        (1e-7, "1e-7"),
        (1.5e-7, "1.5e-7"),
        (1e20, "100000000000000000000"),
        (1e21, "1e+21"),
        (1.2345e25, "1.2345e+25"),
        (0.1 + 0.2, "0.30000000000000004"),
        (float("nan"), "null"),
        (float("inf"), "null"),
    ])
    def test_matches_javascript(self, value, expected):
        assert format_number(value) == expected


class TestStringFormat:

    def test_escapes_like_json_stringify(self):
        text = canonical_json(0, 0, 'a"b\\c\nd\u0001é', [])
        assert '"timestamp":"a\\"b\\\\c\\nd\\u0001é"' in text

    def test_non_ascii_is_utf8_not_escaped(self):
        out = canonicalize(0, 0, TS, [Feature("ổ gà")])
        assert "ổ gà".encode("utf-8") in out

    def test_lone_surrogate_is_escaped(self):
        assert format_string("a\ud800b") == '"a\\ud800b"'
        assert format_string("\udfff") == '"\\udfff"'
        out = canonicalize(0, 0, "\ud800", [])
        assert b'"timestamp":"\\ud800"' in out

    def test_surrogate_pair_is_one_character(self):
        assert format_string("\ud83d\ude00") == '"\U0001f600"'
        assert format_string("\ud83d\ude00") == format_string("\U0001f600")


class TestDigestHelpers:

    def test_digest_format(self):
        assert is_valid_digest(REFERENCE_DIGEST)
        assert REFERENCE_DIGEST == REFERENCE_DIGEST.lower()

    @pytest.mark.parametrize("bad", ["", "0x", "3e4f" * 16, "0x" + "g" * 64, "0x" + "a" * 63, "0X" + "a" * 64])
    def test_invalid_digests(self, bad):
        assert not is_valid_digest(bad)

    def test_to_bytes(self):
        raw = digest_to_bytes(REFERENCE_DIGEST)
        assert len(raw) == 32
        assert raw.hex() == REFERENCE_DIGEST[2:]

    def test_to_bytes_rejects_garbage(self):
        with pytest.raises(ValueError):
            digest_to_bytes("0x1234")

    def test_empty_sentinel(self):
        assert is_empty_digest(ZERO_DIGEST)
        assert not is_empty_digest(REFERENCE_DIGEST)

    def test_case_insensitive_compare(self):
        assert digests_equal(REFERENCE_DIGEST, "0x" + REFERENCE_DIGEST[2:].upper())
