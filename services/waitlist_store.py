"""Durable storage for accepted waitlist signups (Supabase `waitlist` table)"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from config.database import get_supabase

WAITLIST_TABLE = 'waitlist'

# PostgreSQL unique_violation
UNIQUE_VIOLATION_CODE = '23505'


class DuplicateEmailError(Exception):
    """The unique constraint on waitlist.email rejected the insert"""

    def __init__(self, email: str):
        super().__init__(f"Email already exists in waitlist: {email}")
        self.email = email


@dataclass
class WaitlistEntry:
    email: str
    business_type: Optional[str] = None
    source: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_row(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'email': self.email,
            'business_type': self.business_type,
            'source': self.source,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'created_at': self.created_at.isoformat(),
        }


def is_unique_violation(error: Exception) -> bool:
    """Recognise a uniqueness failure from PostgREST (APIError carries the SQLSTATE in .code)"""
    if getattr(error, 'code', None) == UNIQUE_VIOLATION_CODE:
        return True
    message = str(error).lower()
    return 'duplicate key' in message or 'unique constraint' in message


class WaitlistStore:
    """exists/insert over the waitlist table. The DB unique index on email is the real guarantee."""

    def __init__(self, supabase=None):
        self.supabase = supabase or get_supabase()

    def exists(self, email: str) -> bool:
        result = self.supabase.table(WAITLIST_TABLE).select('id').eq('email', email).limit(1).execute()
        return bool(result.data)

    def insert(self, entry: WaitlistEntry) -> WaitlistEntry:
        """Insert the entry; raises DuplicateEmailError if the email is already stored"""
        try:
            self.supabase.table(WAITLIST_TABLE).insert(entry.to_row()).execute()
        except Exception as e:
            if is_unique_violation(e):
                raise DuplicateEmailError(entry.email) from e
            raise
        return entry
