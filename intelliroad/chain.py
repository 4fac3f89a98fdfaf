"""
Read-only views of the AnchorRegistry, straight from algod's REST API.

No signing identity is needed: box contents are public.
"""

import base64
import logging
from typing import List, Optional

import requests

from intelliroad import config
from intelliroad.anchor_client import BOX_PREFIX
from intelliroad.canonical import digest_to_bytes
from intelliroad.errors import NotConfiguredError, TransientNetworkError

logger = logging.getLogger(__name__)

TIMEOUT = 10


def _headers() -> dict:
    return {"X-Algo-API-Token": config.ALGOD_TOKEN} if config.ALGOD_TOKEN else {}


def _app_id(app_id: Optional[int]) -> int:
    app_id = app_id if app_id is not None else config.APP_ID
    if not app_id:
        raise NotConfiguredError("no AnchorRegistry app id configured (APP_ID)")
    return app_id


def _get(url: str, **kwargs) -> requests.Response:
    try:
        return requests.get(url, headers=_headers(), timeout=TIMEOUT, **kwargs)
    except requests.RequestException as e:
        raise TransientNetworkError(f"could not reach algod: {e}") from e


def fetch_anchor_from_chain(digest: str, app_id: Optional[int] = None) -> bool:
    """True if the registry holds a box for ``digest``."""
    app_id = _app_id(app_id)
    name = BOX_PREFIX + digest_to_bytes(digest)
    resp = _get(
        f"{config.ALGOD_URL}/v2/applications/{app_id}/box",
        params={"name": "b64:" + base64.b64encode(name).decode()},
    )
    if resp.status_code == 404:
        return False
    if resp.status_code >= 500:
        raise TransientNetworkError(f"algod returned {resp.status_code}")
    resp.raise_for_status()
    return True


def fetch_registry_from_chain(app_id: Optional[int] = None) -> List[str]:
    """Every anchored digest, read live from the application's boxes."""
    app_id = _app_id(app_id)
    resp = _get(f"{config.ALGOD_URL}/v2/applications/{app_id}/boxes")
    if resp.status_code >= 500:
        raise TransientNetworkError(f"algod returned {resp.status_code}")
    resp.raise_for_status()

    box_list = resp.json().get("boxes", [])
    logger.info("[CHAIN] Found %d box(es) in App %d", len(box_list), app_id)

    digests = []
    for box_ref in box_list:
        raw_key = base64.b64decode(box_ref["name"])
        if not raw_key.startswith(BOX_PREFIX):
            continue
        digests.append("0x" + raw_key[len(BOX_PREFIX):].hex())
    return sorted(digests)
