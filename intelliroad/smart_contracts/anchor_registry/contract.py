# =============================================================================
#  AnchorRegistry — Algorand Smart Contract
#  -----------------------------------------------------------------------------
#  Project   : IntelliRoad
#  Standard  : ARC-4  (typed ABI — anchor(byte[32])void, isAnchored(byte[32])bool)
#              ARC-28 (event Anchored(byte[32],address,uint256))
#  Language  : Algorand Python  →  compiled to AVM bytecode via PuyaPy
# =============================================================================
#
#  PURPOSE
#  -------
#  Proof-of-existence registry for observation digests. A digest is the
#  SHA-256 of an observation's canonical form, computed off-chain; only the
#  32 hash bytes ever reach the ledger, never the observation itself.
#
#  STORAGE MODEL
#  -------------
#  Uses Algorand Box Storage, a native key-value store on the AVM.
#
#    BoxMap<byte[32], bool>
#    │
#    ├── Key   : "anchored_hashes" ‖ 32 raw digest bytes
#    │
#    └── Value : ARC-4 bool, always true once written
#
#  Each box occupies: 2500 + 400 × (key_length + 1) microALGO in MBR, funded
#  by a payment to the application account in the same atomic group.
#
#  STATE MACHINE (per digest)
#  --------------------------
#    Unanchored (no box)  ──anchor()──▶  Anchored (box present, terminal)
#
#  Submitter and block timestamp are not stored; they are carried by the
#  Anchored event, which indexers retain permanently.
#
# =============================================================================

import typing

from algopy import ARC4Contract, BoxMap, Global, Txn, arc4, op

Bytes32: typing.TypeAlias = arc4.StaticArray[arc4.Byte, typing.Literal[32]]


class Anchored(arc4.Struct):
    """ARC-28 event emitted once per digest, at the moment it is anchored."""

    hash: Bytes32
    submitter: arc4.Address
    timestamp: arc4.UInt256


class AnchorRegistry(ARC4Contract):
    """
    On-chain registry of anchored observation digests.

    Deployment: one instance per network. Reads are permissionless: anyone
    can ask whether a digest is anchored without going through IntelliRoad
    infrastructure.
    """

    def __init__(self) -> None:
        # BoxMap: digest bytes  →  anchored flag
        self.anchored_hashes = BoxMap(Bytes32, arc4.Bool)

    @arc4.abimethod
    def anchor(self, hash: Bytes32) -> None:
        """
        Anchor an observation digest.

        Parameters
        ----------
        hash : byte[32]
            SHA-256 of the observation's canonical form.

        Behaviour
        ---------
        - All-zero hash: rejected with "Empty hash", whatever the state.
        - Hash already anchored: rejected with "Hash already anchored".
        - Otherwise: writes the box and emits Anchored(hash, Txn.sender,
          Global.latest_timestamp).

        A failing assert rejects the whole transaction group atomically; no
        state is modified.
        """
        assert hash.bytes != op.bzero(32), "Empty hash"
        assert hash not in self.anchored_hashes, "Hash already anchored"

        self.anchored_hashes[hash] = arc4.Bool(True)

        arc4.emit(
            Anchored(
                hash=hash.copy(),
                submitter=arc4.Address(Txn.sender),
                timestamp=arc4.UInt256(Global.latest_timestamp),
            )
        )

    @arc4.abimethod(readonly=True, name="isAnchored")
    def is_anchored(self, hash: Bytes32) -> bool:
        """True once ``hash`` has been anchored; False before. Never changes back."""
        return hash in self.anchored_hashes
