"""
Canonical form and digest derivation for observations.

Canonical form v1 is compact JSON with a pinned key order:

    {"lat":<num>,"lng":<num>,"timestamp":<str>,"features":[<feature>,...]}
    <feature> := {"type":<str>[,"confidence":<num>][,"bbox":[<num>,<num>,<num>,<num>]]}

Numbers are written with the ECMAScript Number-to-String algorithm and strings
with JSON.stringify escaping, so the bytes are identical to what the browser
client produces with ``JSON.stringify({lat, lng, timestamp, features})``.
Any change here is a wire-format change: bump CANONICAL_FORM_VERSION and
update every client.
"""

import hashlib
import json
import math
import re
from decimal import Decimal
from typing import Iterable, Union

from intelliroad.models import Feature, Observation

CANONICAL_FORM_VERSION = 1

DIGEST_PREFIX  = "0x"
DIGEST_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")
ZERO_DIGEST    = DIGEST_PREFIX + "0" * 64


# ── Scalars ───────────────────────────────────────────────────────────────────

def format_number(value: Union[int, float]) -> str:
    """Render a number exactly as JavaScript's ``String(number)`` does."""
    x = float(value)
    if math.isnan(x) or math.isinf(x):
        return "null"   # JSON.stringify(NaN) === "null"
    if x == 0:
        return "0"      # covers -0
    if x < 0:
        return "-" + format_number(-x)

    # repr() yields the shortest round-trip digits, same as ECMAScript.
    _, digit_tuple, exponent = Decimal(repr(x)).as_tuple()
    raw = "".join(str(d) for d in digit_tuple)
    digits = raw.rstrip("0")
    exponent += len(raw) - len(digits)
    k = len(digits)
    n = exponent + k    # value == 0.<digits> * 10**n

    if k <= n <= 21:
        return digits + "0" * (n - k)
    if 0 < n <= 21:
        return digits[:n] + "." + digits[n:]
    if -6 < n <= 0:
        return "0." + "0" * (-n) + digits

    e = n - 1
    sign = "+" if e >= 0 else "-"
    mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
    return f"{mantissa}e{sign}{abs(e)}"


_SURROGATES = re.compile("[\ud800-\udbff][\udc00-\udfff]|[\ud800-\udfff]")


def _surrogate(match: "re.Match[str]") -> str:
    s = match.group()
    if len(s) == 2:
        return chr(0x10000 + ((ord(s[0]) - 0xD800) << 10) + (ord(s[1]) - 0xDC00))
    return "\\u%04x" % ord(s)   # well-formed JSON.stringify escapes lone surrogates


def format_string(value: str) -> str:
    return _SURROGATES.sub(_surrogate, json.dumps(value, ensure_ascii=False))


# ── Canonicalizer ─────────────────────────────────────────────────────────────

def _canonical_feature(feature: Feature) -> str:
    parts = ['"type":' + format_string(feature.kind)]
    if feature.confidence is not None:
        parts.append('"confidence":' + format_number(feature.confidence))
    if feature.bounding_box is not None:
        bbox = ",".join(format_number(v) for v in feature.bounding_box)
        parts.append('"bbox":[' + bbox + "]")
    return "{" + ",".join(parts) + "}"


def canonical_features(features: Iterable[Feature]) -> str:
    return "[" + ",".join(_canonical_feature(f) for f in features) + "]"


def canonical_json(lat: float, lng: float, timestamp: str, features: Iterable[Feature]) -> str:
    return (
        '{"lat":' + format_number(lat)
        + ',"lng":' + format_number(lng)
        + ',"timestamp":' + format_string(timestamp)
        + ',"features":' + canonical_features(features)
        + "}"
    )


def canonicalize(lat: float, lng: float, timestamp: str, features: Iterable[Feature]) -> bytes:
    """
    Deterministic byte encoding of an observation's semantic fields.

    Does not validate shape; callers validate before canonicalizing.
    """
    return canonical_json(lat, lng, timestamp, features).encode("utf-8")


# ── HashDeriver ───────────────────────────────────────────────────────────────

def derive_digest(canonical: bytes) -> str:
    """SHA-256 over canonical bytes, as ``0x`` + 64 lowercase hex chars."""
    return DIGEST_PREFIX + hashlib.sha256(canonical).hexdigest()


def digest_observation(observation: Observation) -> str:
    return derive_digest(
        canonicalize(observation.lat, observation.lng, observation.timestamp, observation.features)
    )


def is_valid_digest(digest: str) -> bool:
    return isinstance(digest, str) and DIGEST_PATTERN.match(digest) is not None


def is_empty_digest(digest: str) -> bool:
    return digest.lower() == ZERO_DIGEST


def digest_to_bytes(digest: str) -> bytes:
    """32 raw bytes for the ledger's ``byte[32]`` argument."""
    if not is_valid_digest(digest):
        raise ValueError(f"not a 0x-prefixed 32-byte hex digest: {digest!r}")
    return bytes.fromhex(digest[len(DIGEST_PREFIX):])


def digests_equal(a: str, b: str) -> bool:
    return a.lower() == b.lower()
