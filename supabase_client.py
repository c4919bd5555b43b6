"""
Supabase client for application-state persistence.

Table expected in Supabase:
  - app_states: user_id (text, PK), state (jsonb), updated_at (timestamptz)

Without SUPABASE_URL / SUPABASE_KEY the engine runs in local-only mode:
every call is a no-op returning None.
"""

from __future__ import annotations

import os
import logging
from datetime import datetime, timezone
from dotenv import load_dotenv

from models import AppState

load_dotenv()

logger = logging.getLogger(__name__)

SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")  # anon or service-role key
STATE_TABLE = "app_states"
DEFAULT_USER = os.getenv("PIXELQUEST_USER_ID", "local")

_client = None


def get_supabase():
    """Lazy-init Supabase client. Returns None if not configured."""
    global _client
    if _client is not None:
        return _client
    if not SUPABASE_URL or not SUPABASE_KEY:
        logger.warning("Supabase not configured — running in local-only mode")
        return None
    try:
        from supabase import create_client
        _client = create_client(SUPABASE_URL, SUPABASE_KEY)
        logger.info("Supabase client initialised")
        return _client
    except Exception as e:
        logger.error(f"Failed to init Supabase: {e}")
        return None


# ──────────────────────────────────────────────────────────────
# Application state
# ──────────────────────────────────────────────────────────────

def load_state(user_id: str = DEFAULT_USER) -> AppState | None:
    """Fetch and validate the stored state. None if absent or unavailable."""
    sb = get_supabase()
    if not sb:
        return None
    try:
        result = sb.table(STATE_TABLE).select("state").eq("user_id", user_id).execute()
        if not result.data:
            return None
        return AppState.model_validate(result.data[0]["state"])
    except Exception as e:
        logger.error(f"load_state failed: {e}")
        return None


def save_state(state: AppState, user_id: str = DEFAULT_USER) -> dict | None:
    """Upsert the whole state document. Returns the stored row."""
    sb = get_supabase()
    if not sb:
        return None
    try:
        payload = {
            "user_id": user_id,
            "state": state.model_dump(mode="json"),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        result = sb.table(STATE_TABLE).upsert(payload, on_conflict="user_id").execute()
        return result.data[0] if result.data else None
    except Exception as e:
        logger.error(f"save_state failed: {e}")
        return None


def delete_state(user_id: str = DEFAULT_USER) -> None:
    sb = get_supabase()
    if not sb:
        return
    try:
        sb.table(STATE_TABLE).delete().eq("user_id", user_id).execute()
    except Exception as e:
        logger.error(f"delete_state failed: {e}")
