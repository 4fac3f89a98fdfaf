"""
Error taxonomy for the integrity pipeline.

Every error carries a machine-readable ``kind`` so the HTTP layer and CLI
callers can branch on it instead of matching free text.
"""

from typing import Any, Optional


class IntelliRoadError(Exception):
    """Base class for every error the pipeline surfaces to a caller."""

    kind = "error"

    def __init__(self, message: str, detail: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        body = {"ok": False, "kind": self.kind, "error": self.message}
        if self.detail is not None:
            body["detail"] = self.detail
        return body


class ValidationError(IntelliRoadError):
    """Malformed or missing input. Nothing was persisted."""

    kind = "validation"


class IntegrityError(IntelliRoadError):
    """Server-recomputed digest differs from the digest the caller claimed."""

    kind = "integrity"


class NotFoundError(IntelliRoadError):
    kind = "not_found"


# ── Ledger errors ─────────────────────────────────────────────────────────────

class AnchorRejection(IntelliRoadError):
    """
    Terminal ledger-side refusal of an anchor. ``status`` equals
    ``AnchorStatus.REJECTED``; a rejected anchor is never retried.
    """

    kind = "rejected"
    status = "rejected"


class AlreadyAnchoredError(AnchorRejection):
    """The digest is already recorded on chain. Benign, never retried."""

    kind = "already_anchored"


class EmptyHashError(AnchorRejection):
    """The all-zero sentinel digest was submitted for anchoring."""

    kind = "empty_hash"


class AnchorRejectedError(AnchorRejection):
    """The ledger rejected the anchor call for a reason we do not classify."""

    kind = "rejected"


class TransientNetworkError(IntelliRoadError):
    """Could not reach the ledger node. Safe to retry."""

    kind = "transient_network"


class ConfirmationTimeout(IntelliRoadError):
    """
    The anchor transaction was submitted but confirmation was not observed
    within the caller's wait window. The transaction itself may still land.
    """

    kind = "confirmation_timeout"

    def __init__(self, message: str, tx_id: str) -> None:
        super().__init__(message, detail={"txId": tx_id})
        self.tx_id = tx_id


class NotConfiguredError(IntelliRoadError):
    """Anchoring endpoints were called but no AnchorRegistry app id is set."""

    kind = "not_configured"
