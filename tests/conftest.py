import pytest

from intelliroad.canonical import canonicalize, derive_digest
from intelliroad.integrity import IntegrityVerifier
from intelliroad.models import Feature
from intelliroad.store import ObservationStore

# Cross-implementation reference vector (browser client produces the same bytes).
REFERENCE_CANONICAL = (
    '{"lat":10.762622,"lng":106.660172,"timestamp":"2024-01-01T00:00:00.000Z",'
    '"features":[{"type":"pothole","confidence":0.87}]}'
)
REFERENCE_DIGEST = "0x3e4fe99633439d1aa73759bf43fcbcdccea65c871d3edc7876ecc860b3782efe"


def make_payload(lat=10.762622, lng=106.660172, timestamp="2024-01-01T00:00:00.000Z", features=None, hash_hex=None):
    """Submission body whose hashHex is computed the way an honest client would."""
    if features is None:
        features = [{"type": "pothole", "confidence": 0.87}]
    if hash_hex is None:
        parsed = [Feature.from_wire(f) for f in features]
        hash_hex = derive_digest(canonicalize(lat, lng, timestamp, parsed))
    return {"lat": lat, "lng": lng, "timestamp": timestamp, "features": features, "hashHex": hash_hex}


@pytest.fixture()
def store():
    s = ObservationStore(":memory:")
    yield s
    s.close()


@pytest.fixture()
def verifier(store):
    return IntegrityVerifier(store)
