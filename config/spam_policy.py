"""Spam-prevention thresholds and denylists for the waitlist admission gate"""
import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from utils.logger import log_info, log_warning

DEFAULT_DISPOSABLE_DOMAINS_FILE = os.path.join(os.path.dirname(__file__), 'disposable_domains.txt')

# Legitimate domains that would otherwise trip the short-domain heuristic
SHORT_DOMAIN_ALLOWLIST = frozenset({'qq.com', 'me.com'})


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        log_warning(f"Ignoring non-integer value for {name}: {value!r}")
        return default


@dataclass(frozen=True)
class SpamPolicy:
    """Thresholds are inclusive: a count >= threshold blocks the signup"""
    submissions_per_hour: int = 3
    submissions_per_day: int = 10
    unique_emails_per_ip_per_day: int = 5
    similar_emails_per_day: int = 3
    # Local parts shorter than this skip the similar-email check
    min_similar_local_part_length: int = 3
    disposable_domains: FrozenSet[str] = field(default_factory=frozenset)
    short_domain_allowlist: FrozenSet[str] = SHORT_DOMAIN_ALLOWLIST


def load_disposable_domains(path: Optional[str] = None) -> FrozenSet[str]:
    """Read one domain per line; blank lines and '#' comments are skipped"""
    path = path or os.environ.get('DISPOSABLE_DOMAINS_FILE') or DEFAULT_DISPOSABLE_DOMAINS_FILE
    domains = set()
    try:
        with open(path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip().lower()
                if line and not line.startswith('#'):
                    domains.add(line)
    except OSError as e:
        log_warning(f"Disposable domain list not readable at {path}: {e}; no domains will be blocked")
        return frozenset()

    log_info(f"Loaded {len(domains)} disposable email domains from {path}")
    return frozenset(domains)


def load_spam_policy(disposable_domains_path: Optional[str] = None) -> SpamPolicy:
    """Build the policy from environment overrides on top of the defaults"""
    defaults = SpamPolicy()
    return SpamPolicy(
        submissions_per_hour=_env_int('WAITLIST_SUBMISSIONS_PER_HOUR', defaults.submissions_per_hour),
        submissions_per_day=_env_int('WAITLIST_SUBMISSIONS_PER_DAY', defaults.submissions_per_day),
        unique_emails_per_ip_per_day=_env_int(
            'WAITLIST_UNIQUE_EMAILS_PER_IP_PER_DAY', defaults.unique_emails_per_ip_per_day
        ),
        similar_emails_per_day=_env_int('WAITLIST_SIMILAR_EMAILS_PER_DAY', defaults.similar_emails_per_day),
        disposable_domains=load_disposable_domains(disposable_domains_path),
    )
