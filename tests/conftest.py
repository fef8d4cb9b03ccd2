import re
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from config.spam_policy import SpamPolicy, load_disposable_domains
from services.admission_gate import AdmissionGate
from services.attempt_ledger import AttemptLedger
from services.rate_limit_store import RateLimitStore
from services.waitlist_store import WaitlistStore


BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
MAC_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Safari/605.1.15"
)
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


# -------- In-memory stand-in for the supabase-py query builder --------

class FakeAPIError(Exception):
    """Mimics postgrest.exceptions.APIError: SQLSTATE in .code"""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        self.code = code


class FakeResult:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


def _as_time(value):
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


def _sort_key(column, value):
    if column.endswith('_at'):
        return _as_time(value)
    return value


def _like_to_regex(pattern):
    out = []
    chars = iter(pattern)
    for ch in chars:
        if ch == '\\':
            out.append(re.escape(next(chars, '')))
        elif ch == '%':
            out.append('.*')
        elif ch == '_':
            out.append('.')
        else:
            out.append(re.escape(ch))
    return re.compile(''.join(out), re.DOTALL)


class FakeQuery:
    def __init__(self, db, table_name):
        self.db = db
        self.table_name = table_name
        self.op = None
        self.payload = None
        self.count = None
        self.filters = []
        self.order_by = None
        self.limit_to = None
        self.range_to = None

    def select(self, columns='*', count=None):
        self.op = 'select'
        self.count = count
        return self

    def insert(self, payload):
        self.op = 'insert'
        self.payload = payload
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and _as_time(row[column]) >= _as_time(value))
        return self

    def gt(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and _as_time(row[column]) > _as_time(value))
        return self

    def like(self, column, pattern):
        regex = _like_to_regex(pattern)
        self.filters.append(lambda row: row.get(column) is not None and regex.fullmatch(row[column]) is not None)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, size):
        self.limit_to = size
        return self

    def range(self, start, end):
        self.range_to = (start, end)
        return self

    def execute(self):
        self.db.calls.append((self.table_name, self.op))
        failure = self.db.failures.get((self.table_name, self.op))
        if failure is not None:
            raise failure

        rows = self.db.tables.setdefault(self.table_name, [])
        if self.op == 'insert':
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            for new_row in new_rows:
                for column in self.db.unique.get(self.table_name, ()):
                    if any(row.get(column) == new_row.get(column) for row in rows):
                        raise FakeAPIError(
                            f'duplicate key value violates unique constraint "{self.table_name}_{column}_key"',
                            code='23505',
                        )
                rows.append(dict(new_row))
            return FakeResult([dict(r) for r in new_rows])

        matched = [row for row in rows if all(f(row) for f in self.filters)]
        total = len(matched)
        if self.order_by:
            column, desc = self.order_by
            matched.sort(key=lambda row: _sort_key(column, row.get(column)), reverse=desc)
        if self.range_to is not None:
            start, end = self.range_to
            matched = matched[start:end + 1]
        if self.limit_to is not None:
            matched = matched[:self.limit_to]
        if self.db.max_rows is not None:
            matched = matched[:self.db.max_rows]
        return FakeResult([dict(r) for r in matched], count=total if self.count else None)


class FakeSupabase:
    def __init__(self):
        self.tables = {'waitlist': [], 'waitlist_blocked_attempts': []}
        self.unique = {'waitlist': ('email',)}
        self.failures = {}
        self.calls = []
        # Per-response row cap, like PostgREST max-rows
        self.max_rows = None

    def table(self, name):
        return FakeQuery(self, name)

    def fail(self, table_name, op, error):
        """Make every `op` ('select'/'insert') on `table_name` raise `error`"""
        self.failures[(table_name, op)] = error

    def rows(self, table_name):
        return self.tables.setdefault(table_name, [])


def seed_signup(db, email, ip_address='10.0.0.1', created_at=None, user_agent=BROWSER_UA):
    db.rows('waitlist').append({
        'id': str(uuid.uuid4()),
        'email': email,
        'business_type': None,
        'source': 'website',
        'ip_address': ip_address,
        'user_agent': user_agent,
        'created_at': (created_at or NOW).isoformat(),
    })


def seed_blocked(db, ip_address, reason, attempted_at, email='spam@example.com'):
    db.rows('waitlist_blocked_attempts').append({
        'id': str(uuid.uuid4()),
        'ip_address': ip_address,
        'email': email,
        'user_agent': 'curl/8.0',
        'block_reason': reason,
        'attempted_at': attempted_at.isoformat(),
    })


class FixedClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self, result=True, error=None):
        self.calls = []
        self.result = result
        self.error = error

    def notify(self, email, business_type=None, source=None):
        self.calls.append((email, business_type, source))
        if self.error is not None:
            raise self.error
        return self.result


# -------- fixtures --------

@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope='session')
def disposable_domains():
    return load_disposable_domains()


@pytest.fixture
def policy(disposable_domains):
    return SpamPolicy(disposable_domains=disposable_domains)


@pytest.fixture
def make_gate(fake_db, notifier, policy, clock):
    """Factory so tests can swap the policy or a store"""
    def _make(policy=policy, waitlist_store=None, rate_limit_store=None, ledger=None, notifier=notifier):
        return AdmissionGate(
            waitlist_store=waitlist_store or WaitlistStore(fake_db),
            rate_limit_store=rate_limit_store or RateLimitStore(fake_db),
            ledger=ledger or AttemptLedger(fake_db),
            notifier=notifier,
            policy=policy,
            clock=clock,
        )
    return _make


@pytest.fixture
def gate(make_gate):
    return make_gate()
