"""
Deployment of the AnchorRegistry application.

Compile the contract first:
    puyapy intelliroad/smart_contracts/anchor_registry/contract.py --out-dir artifacts

which writes AnchorRegistry.approval.teal / AnchorRegistry.clear.teal.
"""

import base64
import logging
from pathlib import Path
from typing import Tuple

from algosdk import account
from algosdk.transaction import ApplicationCreateTxn, OnComplete, StateSchema, wait_for_confirmation
from algosdk.v2client import algod

logger = logging.getLogger(__name__)

ARTIFACTS_DIR = Path(__file__).parent / "smart_contracts" / "artifacts" / "anchor_registry"


def load_teal(artifacts_dir: Path = ARTIFACTS_DIR) -> Tuple[str, str]:
    approval = (artifacts_dir / "AnchorRegistry.approval.teal").read_text()
    clear    = (artifacts_dir / "AnchorRegistry.clear.teal").read_text()
    return approval, clear


def compile_teal(client: algod.AlgodClient, source: str) -> bytes:
    result = client.compile(source)
    return base64.b64decode(result["result"])


def deploy_registry(
    client: algod.AlgodClient,
    private_key: str,
    approval_teal: str,
    clear_teal: str,
    wait_rounds: int = 8,
) -> int:
    """Create a fresh AnchorRegistry application and return its app id."""
    sender = account.address_from_private_key(private_key)

    approval_bytes = compile_teal(client, approval_teal)
    clear_bytes    = compile_teal(client, clear_teal)

    # State schema: AnchorRegistry uses BoxMap, no local/global ints or bytes needed
    txn = ApplicationCreateTxn(
        sender=sender,
        sp=client.suggested_params(),
        on_complete=OnComplete.NoOpOC,
        approval_program=approval_bytes,
        clear_program=clear_bytes,
        global_schema=StateSchema(num_uints=0, num_byte_slices=0),
        local_schema=StateSchema(num_uints=0, num_byte_slices=0),
    )

    signed_txn = txn.sign(private_key)
    tx_id      = client.send_transaction(signed_txn)
    logger.info("[DEPLOY] Create tx submitted: %s", tx_id)

    result = wait_for_confirmation(client, tx_id, wait_rounds=wait_rounds)
    app_id = result["application-index"]
    logger.info("[DEPLOY] AnchorRegistry deployed, app id %d", app_id)
    return app_id
