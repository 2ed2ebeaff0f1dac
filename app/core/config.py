import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# .env sits next to run_server.exe when frozen, else in the project root
if getattr(sys, "frozen", False):
    BASE_DIR = Path(sys.executable).parent
else:
    BASE_DIR = Path(__file__).resolve().parents[2]

load_dotenv(BASE_DIR / ".env")

DB_HOST = os.getenv("DB_HOST", "127.0.0.1")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "cooperative")
DB_USER = os.getenv("DB_USER", "postgres")
DB_PASS = os.getenv("DB_PASS", "postgres")

# Fix the None / empty / "None" port issue
if not DB_PORT or str(DB_PORT).lower() == "none":
    DB_PORT = "5432"

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+psycopg2://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CURRENCY = os.getenv("CURRENCY", "ETB")

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    ).split(",")
    if o.strip()
]

# ---------------------
# Business policy defaults (overridable per-deployment via system_settings)
# ---------------------
MIN_COMMITTEE_APPROVAL = int(os.getenv("MIN_COMMITTEE_APPROVAL", "1"))
TENURE_UPPER_TOLERANCE_MONTHS = int(os.getenv("TENURE_UPPER_TOLERANCE_MONTHS", "1"))

# CREDIT_SAVINGS / REJECT / DISCARD
OVERPAYMENT_POLICY = os.getenv("OVERPAYMENT_POLICY", "CREDIT_SAVINGS").upper()
