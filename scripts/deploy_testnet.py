"""
One-shot deployment of AnchorRegistry to Algorand Testnet.
Usage:
    DEPLOYER_MNEMONIC="word1 word2 ..." python3 scripts/deploy_testnet.py
"""
import os
import sys

from algosdk import account, mnemonic
from algosdk.v2client import algod

from intelliroad import config
from intelliroad.deploy import deploy_registry, load_teal


def main() -> None:
    raw_mnemonic = os.environ.get("DEPLOYER_MNEMONIC", "").strip()
    if not raw_mnemonic:
        print("ERROR: Set DEPLOYER_MNEMONIC env var to your 25-word mnemonic.")
        sys.exit(1)

    private_key = mnemonic.to_private_key(raw_mnemonic)
    print(f"Deployer: {account.address_from_private_key(private_key)}")

    try:
        approval_teal, clear_teal = load_teal()
    except FileNotFoundError as e:
        print(f"ERROR: {e}. Compile the contract with puyapy first.")
        sys.exit(1)

    client = algod.AlgodClient(config.ALGOD_TOKEN, config.ALGOD_URL)
    print("Waiting for confirmation…")
    app_id = deploy_registry(client, private_key, approval_teal, clear_teal)

    print()
    print("=" * 55)
    print(f"  ✅  AnchorRegistry deployed to {config.ALGOD_URL}")
    print(f"      App ID : {app_id}")
    print(f"      Explorer: https://testnet.explorer.perawallet.app/application/{app_id}/")
    print("=" * 55)
    print()
    print(f"Next: set APP_ID={app_id} in intelliroad/.env")


if __name__ == "__main__":
    main()
