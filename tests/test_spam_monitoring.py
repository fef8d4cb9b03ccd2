from datetime import timedelta

from services import spam_monitoring_service
from services.spam_monitoring_service import get_spam_stats

from conftest import NOW, seed_blocked


def test_empty_table(fake_db):
    assert get_spam_stats(fake_db, now=NOW) == {
        'totalBlockedAttempts': 0,
        'blockReasons': [],
        'topBlockedIPs': [],
        'recentAttempts': [],
    }


def test_stats_aggregate_blocked_attempts(fake_db):
    seed_blocked(fake_db, '10.0.0.1', 'rate_limit_hour', NOW - timedelta(minutes=5))
    seed_blocked(fake_db, '10.0.0.1', 'rate_limit_hour', NOW - timedelta(minutes=30))
    seed_blocked(fake_db, '10.0.0.1', 'disposable_email', NOW - timedelta(days=3))
    seed_blocked(fake_db, '10.0.0.2', 'suspicious_user_agent', NOW - timedelta(hours=2))

    stats = get_spam_stats(fake_db, now=NOW)

    assert stats['totalBlockedAttempts'] == 4
    assert stats['blockReasons'][0] == {'reason': 'rate_limit_hour', 'count': 2}
    assert {r['reason'] for r in stats['blockReasons']} == {
        'rate_limit_hour', 'disposable_email', 'suspicious_user_agent'
    }
    assert stats['topBlockedIPs'][0] == {
        'ipAddress': '10.0.0.1',
        'count': 3,
        'lastAttempt': (NOW - timedelta(minutes=5)).isoformat(),
    }

    recent = stats['recentAttempts']
    assert [r['blockReason'] for r in recent] == ['rate_limit_hour', 'rate_limit_hour', 'suspicious_user_agent']
    assert recent[0]['attemptedAt'] == (NOW - timedelta(minutes=5)).isoformat()
    assert set(recent[0]) == {'id', 'ipAddress', 'email', 'blockReason', 'attemptedAt'}


def test_recent_attempts_capped_at_fifty(fake_db):
    for i in range(60):
        seed_blocked(fake_db, f'10.0.{i}.1', 'suspicious_email', NOW - timedelta(minutes=i))

    stats = get_spam_stats(fake_db, now=NOW)

    assert stats['totalBlockedAttempts'] == 60
    assert len(stats['recentAttempts']) == 50
    assert len(stats['topBlockedIPs']) == 10


def test_storage_failure_returns_zeroed_stats(fake_db):
    fake_db.fail('waitlist_blocked_attempts', 'select', ConnectionError('db down'))

    stats = get_spam_stats(fake_db, now=NOW)

    assert stats['totalBlockedAttempts'] == 0
    assert stats['recentAttempts'] == []


def test_stats_cover_rows_beyond_server_row_cap(fake_db):
    fake_db.max_rows = 4
    for i in range(9):
        seed_blocked(fake_db, '10.0.0.1' if i < 6 else '10.0.0.2', 'rate_limit_day', NOW - timedelta(days=i + 2))
    seed_blocked(fake_db, '10.0.0.3', 'disposable_email', NOW - timedelta(days=3))

    stats = get_spam_stats(fake_db, now=NOW)

    assert stats['totalBlockedAttempts'] == 10
    assert stats['blockReasons'] == [
        {'reason': 'rate_limit_day', 'count': 9},
        {'reason': 'disposable_email', 'count': 1},
    ]
    assert stats['topBlockedIPs'][0] == {
        'ipAddress': '10.0.0.1',
        'count': 6,
        'lastAttempt': (NOW - timedelta(days=2)).isoformat(),
    }
    assert sum(ip['count'] for ip in stats['topBlockedIPs']) == 10


def test_stats_page_through_table(fake_db, monkeypatch):
    monkeypatch.setattr(spam_monitoring_service, 'STATS_PAGE_SIZE', 3)
    for i in range(7):
        seed_blocked(fake_db, f'10.0.{i}.1', 'suspicious_email', NOW - timedelta(days=2))

    stats = spam_monitoring_service.get_spam_stats(fake_db, now=NOW)

    assert stats['totalBlockedAttempts'] == 7
    assert stats['blockReasons'] == [{'reason': 'suspicious_email', 'count': 7}]
    # three pages of stats plus the recent-attempts query
    assert fake_db.calls.count(('waitlist_blocked_attempts', 'select')) == 4


def test_stats_prefer_service_role_client(fake_db, monkeypatch):
    def no_anon_client():
        raise AssertionError('anon client should not be used')

    monkeypatch.setattr(spam_monitoring_service, 'get_supabase_admin', lambda: fake_db)
    monkeypatch.setattr(spam_monitoring_service, 'get_supabase', no_anon_client)
    seed_blocked(fake_db, '10.0.0.1', 'rate_limit_hour', NOW - timedelta(minutes=5))

    stats = spam_monitoring_service.get_spam_stats(now=NOW)

    assert stats['totalBlockedAttempts'] == 1
