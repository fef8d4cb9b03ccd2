"""Windowed counting queries over accepted waitlist signups.

No storage of its own: every call re-queries the waitlist table. Errors are
left to propagate so the admission gate can decide to fail open.
"""
from datetime import datetime

from config.database import get_supabase
from services.waitlist_store import WAITLIST_TABLE


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so a local part like 'a_b%' only matches itself"""
    return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


class RateLimitStore:

    def __init__(self, supabase=None):
        self.supabase = supabase or get_supabase()

    def count_by_ip_since(self, ip_address: str, cutoff: datetime) -> int:
        """Accepted signups from this IP created at or after cutoff"""
        result = self.supabase.table(WAITLIST_TABLE).select('id', count='exact').eq(
            'ip_address', ip_address
        ).gte('created_at', cutoff.isoformat()).execute()
        if result.count is not None:
            return result.count
        return len(result.data or [])

    def count_distinct_emails_by_ip_since(self, ip_address: str, cutoff: datetime) -> int:
        result = self.supabase.table(WAITLIST_TABLE).select('email').eq(
            'ip_address', ip_address
        ).gte('created_at', cutoff.isoformat()).execute()
        return len({row['email'] for row in (result.data or [])})

    def count_similar_local_part_since(self, local_part: str, cutoff: datetime) -> int:
        """Accepted signups whose address starts with '<local_part>@', any domain"""
        result = self.supabase.table(WAITLIST_TABLE).select('id', count='exact').like(
            'email', f"{escape_like(local_part)}@%"
        ).gte('created_at', cutoff.isoformat()).execute()
        if result.count is not None:
            return result.count
        return len(result.data or [])
