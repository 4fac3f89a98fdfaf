"""
Inbound payload schema for observation submissions.

Numbers are validated strictly: strings are never coerced into numbers and
booleans are not numbers, so what the server hashes is what the client sent.
"""

from typing import Annotated, Any, List, Mapping, Optional, Tuple

import pydantic
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StrictStr

from intelliroad.canonical import DIGEST_PATTERN
from intelliroad.errors import ValidationError
from intelliroad.models import Feature, Observation

Number = Annotated[float, Field(strict=True, allow_inf_nan=False)]


def _well_formed(value: str) -> str:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError("must not contain unpaired UTF-16 surrogates") from None
    return value


# Text the store and the JSON responses can carry as UTF-8.
Text = Annotated[StrictStr, AfterValidator(_well_formed)]


class FeatureIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind:       Text = Field(alias="type")
    confidence: Optional[Number] = Field(default=None, ge=0.0, le=1.0)
    bbox:       Optional[Tuple[Number, Number, Number, Number]] = None

    def to_feature(self) -> Feature:
        return Feature(kind=self.kind, confidence=self.confidence, bounding_box=self.bbox)


class ObservationSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lat:       Number
    lng:       Number
    timestamp: Text
    features:  List[FeatureIn] = Field(default_factory=list)
    hash_hex:  StrictStr = Field(alias="hashHex", pattern=DIGEST_PATTERN.pattern)

    def to_observation(self) -> Observation:
        """Observation without a digest; the verifier attaches the one it derives."""
        return Observation(
            lat=self.lat,
            lng=self.lng,
            timestamp=self.timestamp,
            features=tuple(f.to_feature() for f in self.features),
        )


def _describe(errors: List[dict]) -> List[dict]:
    return [
        {"path": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in errors
    ]


def parse_submission(payload: Any) -> ObservationSubmission:
    """Validate a raw submission body, raising ValidationError on any shape problem."""
    if not isinstance(payload, Mapping):
        raise ValidationError("request body must be a JSON object")
    try:
        return ObservationSubmission.model_validate(dict(payload))
    except pydantic.ValidationError as e:
        detail = _describe(e.errors())
        summary = "; ".join(f"{d['path']}: {d['message']}" for d in detail)
        raise ValidationError(f"invalid observation: {summary}", detail=detail) from e
