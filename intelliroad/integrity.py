"""
IntegrityVerifier: the only gate through which observations reach the store.

The client computes a digest over the canonical form and sends it with the
fields. The server recomputes it from the fields it received; anything that
does not match byte-for-byte is rejected before persistence.
"""

import logging
from dataclasses import replace
from typing import Any

from intelliroad.canonical import digest_observation, digests_equal
from intelliroad.errors import IntegrityError
from intelliroad.models import StoredObservation
from intelliroad.schemas import parse_submission
from intelliroad.store import ObservationStore

logger = logging.getLogger(__name__)


class IntegrityVerifier:

    def __init__(self, store: ObservationStore) -> None:
        self.store = store

    def submit(self, payload: Any) -> StoredObservation:
        """
        Validate, re-derive, compare, persist.

        Raises ValidationError for shape problems and IntegrityError when the
        claimed ``hashHex`` differs from the recomputed digest. Neither path
        writes anything.
        """
        submission = parse_submission(payload)
        observation = submission.to_observation()

        expected = digest_observation(observation)
        if not digests_equal(expected, submission.hash_hex):
            logger.warning(
                "[VERIFY] Hash mismatch: claimed=%s... recomputed=%s...",
                submission.hash_hex[:12], expected[:12],
            )
            raise IntegrityError(
                "hash mismatch",
                detail={"claimed": submission.hash_hex, "recomputed": expected},
            )

        return self.store.append(replace(observation, digest=expected))

    def audit(self, stored: StoredObservation) -> bool:
        """Re-derive a stored record's digest; False means the row changed at rest."""
        ok = bool(stored.digest) and digests_equal(digest_observation(stored.observation), stored.digest)
        if not ok:
            logger.error("[VERIFY] Stored observation %s no longer matches its digest", stored.id)
        return ok
