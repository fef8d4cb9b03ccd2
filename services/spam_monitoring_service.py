"""Read-only statistics over blocked waitlist attempts, for operators"""
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from config.database import get_supabase, get_supabase_admin
from services.attempt_ledger import BLOCKED_ATTEMPTS_TABLE
from utils.logger import log_error

TOP_BLOCKED_IPS_LIMIT = 10
RECENT_ATTEMPTS_LIMIT = 50
RECENT_WINDOW = timedelta(hours=24)
# PostgREST max-rows on Supabase
STATS_PAGE_SIZE = 1000


def _empty_stats() -> Dict[str, Any]:
    return {
        'totalBlockedAttempts': 0,
        'blockReasons': [],
        'topBlockedIPs': [],
        'recentAttempts': [],
    }


def _fetch_all_attempts(supabase, page_size: Optional[int] = None):
    """
    Page through the whole table with range().

    Returns:
        tuple: (total row count reported by the server, list of rows)
    """
    page_size = page_size or STATS_PAGE_SIZE
    rows: List[Dict[str, Any]] = []
    total = None
    offset = 0
    while True:
        page = supabase.table(BLOCKED_ATTEMPTS_TABLE).select(
            'id, ip_address, block_reason, attempted_at', count='exact'
        ).order('id').range(offset, offset + page_size - 1).execute()

        data = page.data or []
        if page.count is not None:
            total = page.count
        rows.extend(data)

        # The server may return fewer rows than asked for when its own cap is lower
        if not data or (total is not None and len(rows) >= total):
            break
        if total is None and len(data) < page_size:
            break
        offset += len(data)

    return (total if total is not None else len(rows)), rows


def get_spam_stats(supabase=None, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Summarise waitlist_blocked_attempts.

    Returns:
        dict with totalBlockedAttempts, blockReasons (by count desc),
        topBlockedIPs (top 10, with lastAttempt) and recentAttempts
        (last 24 hours, newest first, at most 50). Zeroed if the table
        cannot be read.
    """
    now = now or datetime.now(timezone.utc)
    try:
        supabase = supabase or get_supabase_admin() or get_supabase()

        total, all_rows = _fetch_all_attempts(supabase)

        recent_rows = supabase.table(BLOCKED_ATTEMPTS_TABLE).select(
            'id, ip_address, email, block_reason, attempted_at'
        ).gt('attempted_at', (now - RECENT_WINDOW).isoformat()).order(
            'attempted_at', desc=True
        ).limit(RECENT_ATTEMPTS_LIMIT).execute().data or []
    except Exception as e:
        log_error("Error getting spam stats", e)
        return _empty_stats()

    reason_counts = Counter(row.get('block_reason') for row in all_rows)

    ip_counts = Counter()
    last_attempt_by_ip = {}
    for row in all_rows:
        ip = row.get('ip_address')
        ip_counts[ip] += 1
        attempted_at = row.get('attempted_at') or ''
        if attempted_at > last_attempt_by_ip.get(ip, ''):
            last_attempt_by_ip[ip] = attempted_at

    return {
        'totalBlockedAttempts': total,
        'blockReasons': [
            {'reason': reason, 'count': count}
            for reason, count in reason_counts.most_common()
        ],
        'topBlockedIPs': [
            {'ipAddress': ip, 'count': count, 'lastAttempt': last_attempt_by_ip.get(ip)}
            for ip, count in ip_counts.most_common(TOP_BLOCKED_IPS_LIMIT)
        ],
        'recentAttempts': [
            {
                'id': row.get('id'),
                'ipAddress': row.get('ip_address'),
                'email': row.get('email'),
                'blockReason': row.get('block_reason'),
                'attemptedAt': row.get('attempted_at'),
            }
            for row in recent_rows
        ],
    }
