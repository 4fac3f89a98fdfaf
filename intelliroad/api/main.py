import json
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from intelliroad import config
from intelliroad.canonical import is_valid_digest
from intelliroad.chain import fetch_anchor_from_chain, fetch_registry_from_chain
from intelliroad.errors import IntelliRoadError, NotFoundError, ValidationError
from intelliroad.integrity import IntegrityVerifier
from intelliroad.store import ObservationStore

logging.basicConfig(level=config.LOG_LEVEL)
log = logging.getLogger("intelliroad.api")

# Status code per error kind; anything unlisted is a 400.
STATUS_BY_KIND = {
    "validation": 400,
    "integrity": 400,
    "empty_hash": 400,
    "not_found": 404,
    "already_anchored": 409,
    "rejected": 502,
    "transient_network": 503,
    "not_configured": 503,
    "confirmation_timeout": 504,
}

app = FastAPI(title="IntelliRoad API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# ── Dependencies ──────────────────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_store() -> ObservationStore:
    return ObservationStore(config.DB_PATH)


def get_verifier(store: ObservationStore = Depends(get_store)) -> IntegrityVerifier:
    return IntegrityVerifier(store)


# ── Error mapping ─────────────────────────────────────────────────────────────
@app.exception_handler(IntelliRoadError)
async def _intelliroad_error(request: Request, exc: IntelliRoadError) -> JSONResponse:
    return JSONResponse(status_code=STATUS_BY_KIND.get(exc.kind, 400), content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    detail = [{"path": ".".join(str(p) for p in e["loc"]), "message": e["msg"]} for e in exc.errors()]
    err = ValidationError("invalid request", detail=detail)
    return JSONResponse(status_code=400, content=err.to_dict())


# ── Routes ────────────────────────────────────────────────────────────────────
@app.get("/health")
async def health():
    return {
        "ok": True,
        "name": "IntelliRoad backend",
        "time": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/api/observations")
async def create_observation(request: Request, verifier: IntegrityVerifier = Depends(get_verifier)):
    """
    Server-side hash verification: recompute the digest from the submitted
    fields and persist only if it matches ``hashHex``.
    """
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("request body must be valid JSON") from e

    stored = verifier.submit(payload)
    return {"ok": True, "id": stored.id, "createdAt": stored.created_at, "hashHex": stored.digest}


@app.get("/api/observations")
async def list_observations(limit: Optional[int] = None, store: ObservationStore = Depends(get_store)):
    observations = store.list_recent(limit)
    return {"ok": True, "observations": [o.to_wire() for o in observations]}


@app.get("/api/observations/{observation_id}")
async def get_observation(observation_id: str, store: ObservationStore = Depends(get_store)):
    stored = store.get(observation_id)
    if stored is None:
        raise NotFoundError(f"no observation with id {observation_id}")
    return {"ok": True, "observation": stored.to_wire()}


@app.get("/api/anchors/{hash_hex}")
async def get_anchor(hash_hex: str):
    """Whether ``hash_hex`` is anchored, read live from the AnchorRegistry boxes."""
    if not is_valid_digest(hash_hex):
        raise ValidationError("hashHex must be 0x followed by 64 hex characters")
    anchored = fetch_anchor_from_chain(hash_hex)
    return {"ok": True, "hashHex": hash_hex.lower(), "anchored": anchored, "appId": config.APP_ID}


@app.get("/api/registry")
async def get_registry():
    """Every digest anchored in the configured AnchorRegistry application."""
    digests = fetch_registry_from_chain()
    return {"ok": True, "count": len(digests), "appId": config.APP_ID, "hashes": digests}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
