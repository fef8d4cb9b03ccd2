"""Email heuristics for waitlist spam prevention.

Everything here is pure: no storage, no network. The disposable-domain
denylist is passed in (see config.spam_policy) so it can be refreshed
without touching this module.
"""
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from config.spam_policy import SHORT_DOMAIN_ALLOWLIST
from utils.validation import EMAIL_PATTERN

_LONG_DIGIT_RUN = re.compile(r'\d{6,}')
_REPEATED_CHAR = re.compile(r'(.)\1{4,}')
_VOWEL = re.compile(r'[aeiou]', re.IGNORECASE)

RANDOM_LOCAL_PART_LENGTH = 15
MIN_DOMAIN_LENGTH = 4
MAX_DOMAIN_HYPHENS = 2


@dataclass
class EmailClassification:
    format_valid: bool
    is_disposable: bool = False
    is_suspicious: bool = False
    reasons: List[str] = field(default_factory=list)


def split_email(email: str) -> Tuple[str, str]:
    """Split on the first '@'; missing parts come back as empty strings"""
    local_part, _, domain = (email or '').partition('@')
    return local_part, domain


def is_valid_email_format(email: str) -> bool:
    return bool(email) and bool(EMAIL_PATTERN.match(email))


def is_disposable_domain(domain: str, disposable_domains: Iterable[str]) -> bool:
    """Exact match only: 'mail.mailinator.com' is not 'mailinator.com'"""
    if not domain:
        return False
    return domain.lower() in disposable_domains


def classify_email(email: str,
                   disposable_domains: Optional[Iterable[str]] = None,
                   short_domain_allowlist: Optional[Iterable[str]] = None) -> EmailClassification:
    """
    Classify an email address for the admission gate.

    Args:
        email: Address as submitted (already stripped)
        disposable_domains: Lower-cased denylist of throwaway inbox providers
        short_domain_allowlist: Short domains that are known to be legitimate

    Returns:
        EmailClassification with a human-readable reason per triggered heuristic
    """
    disposable_domains = frozenset(disposable_domains or ())
    if short_domain_allowlist is None:
        short_domain_allowlist = SHORT_DOMAIN_ALLOWLIST

    result = EmailClassification(format_valid=is_valid_email_format(email))
    if not result.format_valid:
        result.reasons.append('Invalid email format')

    local_part, domain = split_email(email)

    if local_part:
        if _LONG_DIGIT_RUN.search(local_part):
            result.is_suspicious = True
            result.reasons.append('Unusual number sequence in email')

        if _REPEATED_CHAR.search(local_part):
            result.is_suspicious = True
            result.reasons.append('Repeated characters in email')

        if len(local_part) > RANDOM_LOCAL_PART_LENGTH and not _VOWEL.search(local_part):
            result.is_suspicious = True
            result.reasons.append('Potentially random email address')

    if domain:
        if len(domain) < MIN_DOMAIN_LENGTH and domain.lower() not in short_domain_allowlist:
            result.is_suspicious = True
            result.reasons.append('Unusually short domain')

        if domain.count('-') > MAX_DOMAIN_HYPHENS:
            result.is_suspicious = True
            result.reasons.append('Domain contains many hyphens')

    if is_disposable_domain(domain, disposable_domains):
        result.is_disposable = True
        result.reasons.append('Disposable email address detected')

    return result
