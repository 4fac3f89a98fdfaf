import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load .env from the same directory as this file, regardless of cwd
load_dotenv(Path(__file__).parent / ".env")

# ── Ledger ────────────────────────────────────────────────────────────────────
ALGOD_URL   = os.getenv("ALGOD_URL", "https://testnet-api.algonode.cloud")
ALGOD_TOKEN = os.getenv("ALGOD_TOKEN", "")
APP_ID      = int(os.getenv("APP_ID", "0"))   # 0 = no AnchorRegistry deployed yet

# ── Storage ───────────────────────────────────────────────────────────────────
DB_PATH            = os.getenv("DB_PATH", str(Path.cwd() / "data.sqlite"))
DEFAULT_LIST_LIMIT = int(os.getenv("DEFAULT_LIST_LIMIT", "50"))
MAX_LIST_LIMIT     = int(os.getenv("MAX_LIST_LIMIT", "200"))

# ── HTTP ──────────────────────────────────────────────────────────────────────
PORT      = int(os.getenv("PORT", "4000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

_raw_origins = os.getenv("ALLOWED_ORIGINS", "*")
ALLOWED_ORIGINS: List[str] = [o.strip() for o in _raw_origins.split(",") if o.strip()]
