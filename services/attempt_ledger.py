"""Append-only audit log of rejected waitlist signups"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from config.database import get_supabase, get_supabase_admin
from utils.logger import log_error

BLOCKED_ATTEMPTS_TABLE = 'waitlist_blocked_attempts'


class AttemptLedger:
    """Best-effort: a failed audit write is logged and never reaches the caller"""

    def __init__(self, supabase=None):
        # Service-role client when configured; the table is RLS-protected
        self.supabase = supabase or get_supabase_admin() or get_supabase()

    def record(self, ip_address: str, email: str, user_agent: str, reason: str,
               attempted_at: Optional[datetime] = None) -> None:
        attempted_at = attempted_at or datetime.now(timezone.utc)
        try:
            self.supabase.table(BLOCKED_ATTEMPTS_TABLE).insert({
                'id': str(uuid.uuid4()),
                'ip_address': ip_address,
                'email': email,
                'user_agent': user_agent,
                'block_reason': reason,
                'attempted_at': attempted_at.isoformat(),
            }).execute()
        except Exception as e:
            log_error(f"Failed to record blocked waitlist attempt (reason={reason}, ip={ip_address})", e)
