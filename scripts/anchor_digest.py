"""
Anchor an observation digest in the AnchorRegistry and wait for confirmation.
Usage:
    ANCHOR_MNEMONIC="word1 word2 ..." python3 scripts/anchor_digest.py 0x<64 hex chars>
"""
import os
import sys

from algosdk import mnemonic

from intelliroad.anchor_client import AnchorClient
from intelliroad.errors import AlreadyAnchoredError, ConfirmationTimeout, IntelliRoadError


def main() -> None:
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(2)
    digest = sys.argv[1]

    raw_mnemonic = os.environ.get("ANCHOR_MNEMONIC", "").strip()
    if not raw_mnemonic:
        print("ERROR: Set ANCHOR_MNEMONIC env var to your 25-word mnemonic.")
        sys.exit(1)

    client = AnchorClient.from_config(mnemonic.to_private_key(raw_mnemonic))
    print(f"Submitter: {client.sender}")

    try:
        submission = client.submit(digest)
        print(f"Tx sent: {submission.tx_id}. Waiting for confirmation…")
        receipt = client.wait_for_confirmation(submission, wait_rounds=int(os.environ.get("WAIT_ROUNDS", "0")))
    except AlreadyAnchoredError:
        print(f"Already anchored: {digest}")
        sys.exit(0)
    except ConfirmationTimeout as e:
        print(f"Submitted but not yet confirmed: {e.tx_id}")
        sys.exit(3)
    except IntelliRoadError as e:
        print(f"Anchor failed [{e.kind}]: {e.message}")
        sys.exit(1)

    print(f"Anchored on-chain ✅  round {receipt.confirmed_round}, tx {receipt.tx_id}")


if __name__ == "__main__":
    main()
