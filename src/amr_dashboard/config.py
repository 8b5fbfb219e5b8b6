"""
config.py
---------
Paths, thresholds and proxy settings shared by the dashboard toolkit.

Proxy settings come from the environment:

    AMR_API_BASE_URL    e.g. https://<project>.supabase.co/functions/v1/make-server
    AMR_API_TOKEN       static bearer token (anon key)
    AMR_API_TIMEOUT     seconds per request          (default 25)
    AMR_HEALTH_TIMEOUT  seconds for the health check (default 8)
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path

# ---------------------------------------------------------------------------
# Directories (adjust ROOT if project layout differs)
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parents[2]
RAW_DIR = ROOT / "data" / "raw"
PROC_DIR = ROOT / "data" / "processed"

# ---------------------------------------------------------------------------
# Surveillance thresholds
# ---------------------------------------------------------------------------
MIN_ISOLATES = 30          # fewer tested isolates than this -> insufficient data
UNKNOWN_ORGANISM = "xxx"   # laboratory code for "no organism identified"
TREND_STABLE_BAND = 5.0    # percentage points
MDR_CLASS_THRESHOLD = 3

DEFAULT_TIMEOUT = 25.0
HEALTH_TIMEOUT = 8.0


@dataclass(frozen=True)
class Settings:
    base_url: str
    token: str
    timeout: float = DEFAULT_TIMEOUT
    health_timeout: float = HEALTH_TIMEOUT

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        """Build settings from AMR_* environment variables."""
        env = os.environ if environ is None else environ
        base_url = env.get("AMR_API_BASE_URL", "").strip()
        if not base_url:
            raise ValueError("AMR_API_BASE_URL is not set")
        return cls(
            base_url=base_url.rstrip("/"),
            token=env.get("AMR_API_TOKEN", ""),
            timeout=float(env.get("AMR_API_TIMEOUT", DEFAULT_TIMEOUT)),
            health_timeout=float(env.get("AMR_HEALTH_TIMEOUT", HEALTH_TIMEOUT)),
        )
