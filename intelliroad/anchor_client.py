"""
AnchorClient: submits ``anchor(byte[32])`` calls to the AnchorRegistry
application and waits for the ledger to confirm them.

Outcomes are distinguishable:
    SUBMITTED  : accepted by the node, not yet in a block (AnchorSubmission)
    CONFIRMED  : in a block; terminal success (AnchorReceipt)
    REJECTED   : terminal failure, raised as an AnchorRejection
                 (AlreadyAnchoredError, EmptyHashError, AnchorRejectedError)
                 whose ``status`` is REJECTED

Only network failures are retried. A rejection is never retried: re-anchoring
the same digest is impossible by construction.
"""

import asyncio
import base64
import hashlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from algosdk import abi, account, encoding
from algosdk.error import AlgodHTTPError
from algosdk.logic import get_application_address
from algosdk.transaction import ApplicationNoOpTxn, PaymentTxn, SignedTransaction, assign_group_id
from algosdk.v2client import algod
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from intelliroad import config
from intelliroad.canonical import digest_to_bytes, is_empty_digest, is_valid_digest
from intelliroad.errors import (
    AlreadyAnchoredError,
    AnchorRejectedError,
    ConfirmationTimeout,
    EmptyHashError,
    TransientNetworkError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# ── On-chain interface (see smart_contracts/anchor_registry/contract.py) ─────
ANCHOR_METHOD      = abi.Method.from_signature("anchor(byte[32])void")
ANCHORED_EVENT     = "Anchored(byte[32],address,uint256)"
ANCHORED_SELECTOR  = hashlib.new("sha512_256", ANCHORED_EVENT.encode()).digest()[:4]

BOX_PREFIX       = b"anchored_hashes"
BOX_VALUE_LENGTH = 1   # arc4.Bool

EMPTY_HASH_MESSAGE       = "Empty hash"
ALREADY_ANCHORED_MESSAGE = "Hash already anchored"

# algod answers a resend of identical signed bytes with one of these.
ALREADY_SUBMITTED_MARKERS = ("already in pool", "already in ledger")


def box_name(raw_digest: bytes) -> bytes:
    return BOX_PREFIX + raw_digest


def box_mbr(key_length: int = len(BOX_PREFIX) + 32, value_length: int = BOX_VALUE_LENGTH) -> int:
    """Minimum balance (microAlgos) the app account needs to hold one anchor box."""
    return 2500 + 400 * (key_length + value_length)


class AnchorStatus(str, Enum):
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    REJECTED  = "rejected"


@dataclass(frozen=True)
class AnchorSubmission:
    digest: str
    tx_id: str
    status: AnchorStatus = AnchorStatus.SUBMITTED


@dataclass(frozen=True)
class AnchorReceipt:
    digest: str
    tx_id: str
    confirmed_round: int
    submitter: Optional[str] = None
    timestamp: Optional[int] = None
    status: AnchorStatus = AnchorStatus.CONFIRMED


def decode_anchored_event(log: bytes) -> Optional[dict]:
    """Decode an ARC-28 Anchored log line; None if the log is some other event."""
    if len(log) != 4 + 96 or log[:4] != ANCHORED_SELECTOR:
        return None
    body = log[4:]
    return {
        "hash": "0x" + body[:32].hex(),
        "submitter": encoding.encode_address(body[32:64]),
        "timestamp": int.from_bytes(body[64:96], "big"),
    }


def _is_transient_http(e: AlgodHTTPError) -> bool:
    code = getattr(e, "code", None)
    return code is None or code == 429 or code >= 500


class AnchorClient:
    """
    Parameters
    ----------
    algod_client : algod.AlgodClient
        Node client used for submission and polling.
    app_id : int
        AnchorRegistry application id.
    private_key : str
        Base64 Algorand private key of the signing identity.
    submit_attempts : int
        Total tries for a submission that fails on the network.
    backoff_seconds : float
        Multiplier for exponential backoff between tries.
    """

    def __init__(
        self,
        algod_client: algod.AlgodClient,
        app_id: int,
        private_key: str,
        submit_attempts: int = 3,
        backoff_seconds: float = 1.0,
    ) -> None:
        if not app_id:
            raise ValueError("AnchorRegistry app id is not configured (APP_ID)")
        self.algod = algod_client
        self.app_id = app_id
        self.app_address = get_application_address(app_id)
        self.sender = account.address_from_private_key(private_key)
        self._private_key = private_key
        self.submit_attempts = submit_attempts
        self.backoff_seconds = backoff_seconds

    @classmethod
    def from_config(cls, private_key: str, **kwargs: Any) -> "AnchorClient":
        client = algod.AlgodClient(config.ALGOD_TOKEN, config.ALGOD_URL)
        return cls(client, config.APP_ID, private_key, **kwargs)

    # ── Plumbing ──────────────────────────────────────────────────────────────

    def _retrying(self) -> Retrying:
        return Retrying(
            retry=retry_if_exception_type(TransientNetworkError),
            stop=stop_after_attempt(self.submit_attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=30),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def _call(self, fn: Callable, *args: Any) -> Any:
        """Run an algod call, turning connection failures into TransientNetworkError."""
        try:
            return fn(*args)
        except AlgodHTTPError as e:
            if _is_transient_http(e):
                raise TransientNetworkError(f"algod unavailable: {e}") from e
            raise
        except OSError as e:
            raise TransientNetworkError(f"could not reach algod: {e}") from e

    def _with_retry(self, fn: Callable, *args: Any) -> Any:
        return self._retrying()(self._call, fn, *args)

    @staticmethod
    def _parse_digest(digest: str) -> bytes:
        if not is_valid_digest(digest):
            raise ValidationError(f"digest must be 0x followed by 64 hex characters, got {digest!r}")
        return digest_to_bytes(digest)

    @classmethod
    def _check_digest(cls, digest: str) -> bytes:
        raw = cls._parse_digest(digest)
        if is_empty_digest(digest):
            raise EmptyHashError(EMPTY_HASH_MESSAGE)
        return raw

    # ── Reads ─────────────────────────────────────────────────────────────────

    def is_anchored(self, digest: str) -> bool:
        raw = self._parse_digest(digest)
        try:
            self._with_retry(self.algod.application_box_by_name, self.app_id, box_name(raw))
        except AlgodHTTPError as e:
            if e.code == 404:
                return False
            raise AnchorRejectedError(f"box lookup failed: {e}") from e
        return True

    # ── Submission ────────────────────────────────────────────────────────────

    def _classify_rejection(self, digest: str, e: Exception) -> Exception:
        text = str(e)
        if EMPTY_HASH_MESSAGE in text or is_empty_digest(digest):
            return EmptyHashError(EMPTY_HASH_MESSAGE)
        if ALREADY_ANCHORED_MESSAGE in text:
            return AlreadyAnchoredError(ALREADY_ANCHORED_MESSAGE, detail={"hashHex": digest})
        # AVM assert failures only report a program counter; ask the ledger why.
        try:
            anchored = self.is_anchored(digest)
        except (TransientNetworkError, AnchorRejectedError) as lookup_error:
            logger.warning("[ANCHOR] Could not re-check %s... after rejection: %s", digest[:10], lookup_error)
            anchored = False
        if anchored:
            return AlreadyAnchoredError(ALREADY_ANCHORED_MESSAGE, detail={"hashHex": digest})
        return AnchorRejectedError(f"ledger rejected anchor: {text}", detail={"hashHex": digest})

    def _build_group(self, raw: bytes) -> Tuple[List[SignedTransaction], str]:
        """Signed [payment, app call] group and the app call's txid."""
        sp = self._with_retry(self.algod.suggested_params)

        # Fund the new box's minimum balance in the same atomic group.
        pay = PaymentTxn(sender=self.sender, sp=sp, receiver=self.app_address, amt=box_mbr())
        call = ApplicationNoOpTxn(
            sender=self.sender,
            sp=sp,
            index=self.app_id,
            app_args=[ANCHOR_METHOD.get_selector(), raw],   # byte[32] encodes as the raw bytes
            boxes=[(self.app_id, box_name(raw))],
        )
        assign_group_id([pay, call])
        signed = [pay.sign(self._private_key), call.sign(self._private_key)]
        return signed, call.get_txid()

    def _send(self, digest: str, signed: List[SignedTransaction]) -> None:
        try:
            self._call(self.algod.send_transactions, signed)
        except AlgodHTTPError as e:
            # The same signed bytes are resent on retry, so a duplicate is our own group.
            if any(marker in str(e) for marker in ALREADY_SUBMITTED_MARKERS):
                logger.info("[ANCHOR] Node already holds the group for %s...", digest[:10])
                return
            raise self._classify_rejection(digest, e) from e

    def submit(self, digest: str) -> AnchorSubmission:
        """
        Sign and send ``anchor(digest)``. Returns as soon as the node accepts it.

        The group is signed once; network retries resend identical bytes, so
        the returned txid is the one that can confirm.

        Raises ValidationError, EmptyHashError and AlreadyAnchoredError before
        anything is sent; TransientNetworkError once retries are exhausted.
        """
        raw = self._check_digest(digest)
        digest = digest.lower()

        if self.is_anchored(digest):
            raise AlreadyAnchoredError(ALREADY_ANCHORED_MESSAGE, detail={"hashHex": digest})

        signed, tx_id = self._build_group(raw)
        self._retrying()(self._send, digest, signed)
        logger.info("[ANCHOR] Tx sent: %s for %s...", tx_id, digest[:10])
        return AnchorSubmission(digest=digest, tx_id=tx_id)

    # ── Confirmation ──────────────────────────────────────────────────────────

    def _receipt_or_none(self, submission: AnchorSubmission, info: dict) -> Optional[AnchorReceipt]:
        if info.get("pool-error"):
            raise self._classify_rejection(submission.digest, Exception(info["pool-error"]))
        confirmed_round = info.get("confirmed-round", 0)
        if not confirmed_round:
            return None

        event = None
        for line in info.get("logs", []):
            event = decode_anchored_event(base64.b64decode(line)) or event
        receipt = AnchorReceipt(
            digest=submission.digest,
            tx_id=submission.tx_id,
            confirmed_round=confirmed_round,
            submitter=event["submitter"] if event else None,
            timestamp=event["timestamp"] if event else None,
        )
        logger.info("[ANCHOR] %s... confirmed in round %d", submission.digest[:10], confirmed_round)
        return receipt

    def _poll(self, submission: AnchorSubmission) -> Optional[AnchorReceipt]:
        info = self._with_retry(self.algod.pending_transaction_info, submission.tx_id)
        return self._receipt_or_none(submission, info)

    def wait_for_confirmation(self, submission: AnchorSubmission, wait_rounds: int = 0) -> AnchorReceipt:
        """
        Block until the ledger confirms ``submission``.

        ``wait_rounds=0`` waits without limit. With a positive value,
        ConfirmationTimeout is raised once that many rounds pass unconfirmed;
        the transaction itself is unaffected and may still land.
        """
        last_round = self._with_retry(self.algod.status)["last-round"]
        current_round = last_round + 1
        while True:
            if wait_rounds > 0 and current_round > last_round + wait_rounds:
                raise ConfirmationTimeout(
                    f"{submission.tx_id} not confirmed after {wait_rounds} rounds",
                    tx_id=submission.tx_id,
                )
            receipt = self._poll(submission)
            if receipt is not None:
                return receipt
            self._with_retry(self.algod.status_after_block, current_round)
            current_round += 1

    async def await_confirmation(
        self,
        submission: AnchorSubmission,
        poll_interval: float = 2.0,
        wait_rounds: int = 0,
    ) -> AnchorReceipt:
        """
        Non-blocking variant of wait_for_confirmation.

        Cancelling the awaiting task only stops local polling; an accepted
        transaction is never withdrawn.
        """
        status = await asyncio.to_thread(self._with_retry, self.algod.status)
        start_round = status["last-round"]
        while True:
            # Rejection classification re-reads the ledger, so it runs off the loop too.
            receipt = await asyncio.to_thread(self._poll, submission)
            if receipt is not None:
                return receipt
            if wait_rounds > 0:
                status = await asyncio.to_thread(self._with_retry, self.algod.status)
                if status["last-round"] > start_round + wait_rounds:
                    raise ConfirmationTimeout(
                        f"{submission.tx_id} not confirmed after {wait_rounds} rounds",
                        tx_id=submission.tx_id,
                    )
            await asyncio.sleep(poll_interval)

    def anchor(self, digest: str, wait_rounds: int = 0) -> AnchorReceipt:
        """Submit then wait for confirmation."""
        submission = self.submit(digest)
        return self.wait_for_confirmation(submission, wait_rounds=wait_rounds)
