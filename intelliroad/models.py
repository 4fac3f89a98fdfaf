"""
Observation data model.

Wire names follow the browser client: a feature's ``kind`` travels as
``type`` and its ``bounding_box`` as ``bbox``.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple


BoundingBox = Tuple[float, float, float, float]


@dataclass(frozen=True)
class Feature:
    kind: str
    confidence: Optional[float] = None
    bounding_box: Optional[BoundingBox] = None

    def to_wire(self) -> dict:
        """Wire dict with absent optional fields omitted, not nulled."""
        out: dict = {"type": self.kind}
        if self.confidence is not None:
            out["confidence"] = self.confidence
        if self.bounding_box is not None:
            out["bbox"] = list(self.bounding_box)
        return out

    @classmethod
    def from_wire(cls, data: dict) -> "Feature":
        bbox = data.get("bbox")
        return cls(
            kind=data["type"],
            confidence=data.get("confidence"),
            bounding_box=tuple(bbox) if bbox is not None else None,
        )


@dataclass(frozen=True)
class Observation:
    lat: float
    lng: float
    timestamp: str
    features: Tuple[Feature, ...] = field(default_factory=tuple)
    digest: Optional[str] = None


@dataclass(frozen=True)
class StoredObservation:
    id: str
    created_at: str
    observation: Observation

    @property
    def digest(self) -> str:
        return self.observation.digest or ""

    def to_wire(self) -> dict:
        obs = self.observation
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "lat": obs.lat,
            "lng": obs.lng,
            "timestamp": obs.timestamp,
            "features": [f.to_wire() for f in obs.features],
            "hashHex": obs.digest,
        }
