#!/usr/bin/env python3
"""
Print waitlist spam-prevention statistics from the blocked-attempts table.

Same data as GET /api/admin/spam-stats, for operators with database
credentials but no admin Clerk account.

Usage:
    python spam_report.py [--json] [--top N]

Examples:
    # Human-readable summary
    python spam_report.py

    # Raw JSON, e.g. for piping into jq
    python spam_report.py --json
"""

import sys
import os
import argparse
import json

# Add parent directory to path to import services
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from services.spam_monitoring_service import get_spam_stats


def format_report(stats, top=10):
    """Render the stats dict as plain text lines"""
    lines = [f"Total blocked attempts: {stats['totalBlockedAttempts']}", "", "By reason:"]

    if not stats['blockReasons']:
        lines.append("  (none)")
    for item in stats['blockReasons']:
        lines.append(f"  {item['reason']:<28} {item['count']}")

    lines.extend(["", "Top blocked IPs:"])
    if not stats['topBlockedIPs']:
        lines.append("  (none)")
    for item in stats['topBlockedIPs'][:top]:
        lines.append(f"  {item['ipAddress']:<40} {item['count']:>5}  last {item['lastAttempt']}")

    lines.extend(["", f"Blocked in the last 24h: {len(stats['recentAttempts'])}"])
    for item in stats['recentAttempts'][:top]:
        lines.append(f"  {item['attemptedAt']}  {item['blockReason']:<28} {item['ipAddress']}  {item['email']}")

    return lines


def main(argv=None):
    parser = argparse.ArgumentParser(description='Show waitlist spam-prevention statistics')
    parser.add_argument('--json', action='store_true', help='Print the raw statistics as JSON')
    parser.add_argument('--top', type=int, default=10, help='Rows to show per section in text mode')

    args = parser.parse_args(argv)

    stats = get_spam_stats()

    if args.json:
        print(json.dumps(stats, indent=2))
    else:
        print('\n'.join(format_report(stats, top=args.top)))
    return 0


if __name__ == '__main__':
    sys.exit(main())
