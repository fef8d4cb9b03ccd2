"""
Waitlist admission gate.

Every signup runs through an ordered list of checks and ends in exactly one
of three outcomes:

    accept     - new signup, inserted into the waitlist
    duplicate  - email already on the waitlist; answered like a success
    reject     - a policy check failed; one blocked-attempt row is written

The first failing check wins. Checks that need the database fail open: if
the query errors, the check is marked indeterminate, logged, and treated as
passed. Only the format and duplicate lookups can fail the request.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Literal, Optional

from config.spam_policy import SpamPolicy
from services.email_classifier import EmailClassification, classify_email, split_email
from services.user_agent_classifier import UNKNOWN_USER_AGENT, is_suspicious_user_agent
from services.waitlist_store import DuplicateEmailError, WaitlistEntry
from utils.logger import log_error, log_event, log_warning

Outcome = Literal['accept', 'duplicate', 'reject']
CheckStatus = Literal['pass', 'fail', 'indeterminate']

UNKNOWN_IP = 'unknown'
DEFAULT_SOURCE = 'website'

ONE_HOUR = timedelta(hours=1)
ONE_DAY = timedelta(hours=24)

# Rejection reason codes, stored verbatim in waitlist_blocked_attempts.block_reason
REASON_INVALID_FORMAT = 'invalid_format'
REASON_RATE_LIMIT_HOUR = 'rate_limit_hour'
REASON_RATE_LIMIT_DAY = 'rate_limit_day'
REASON_DISPOSABLE_EMAIL = 'disposable_email'
REASON_SUSPICIOUS_EMAIL = 'suspicious_email'
REASON_SUSPICIOUS_USER_AGENT = 'suspicious_user_agent'
REASON_TOO_MANY_EMAILS_PER_IP = 'too_many_emails_per_ip'
REASON_SIMILAR_EMAILS = 'similar_emails_detected'


class GateStorageError(Exception):
    """The duplicate lookup or the insert failed; the signup could not be decided"""


@dataclass
class SignupAttempt:
    email: str
    ip_address: str = UNKNOWN_IP
    user_agent: str = UNKNOWN_USER_AGENT
    business_type: Optional[str] = None
    source: Optional[str] = DEFAULT_SOURCE
    # Set by the gate when evaluation starts
    timestamp: Optional[datetime] = None

    @property
    def local_part(self) -> str:
        return split_email(self.email)[0]

    @property
    def has_known_ip(self) -> bool:
        return bool(self.ip_address) and self.ip_address != UNKNOWN_IP


@dataclass(frozen=True)
class CheckResult:
    name: str
    status: CheckStatus
    reason: Optional[str] = None
    cause: Optional[Exception] = None

    @classmethod
    def passed(cls, name: str) -> 'CheckResult':
        return cls(name, 'pass')

    @classmethod
    def failed(cls, name: str, reason: str) -> 'CheckResult':
        return cls(name, 'fail', reason=reason)

    @classmethod
    def indeterminate(cls, name: str, cause: Exception) -> 'CheckResult':
        return cls(name, 'indeterminate', cause=cause)

    @property
    def blocks(self) -> bool:
        """Indeterminate counts as a pass"""
        return self.status == 'fail'


@dataclass
class AdmissionResult:
    outcome: Outcome
    reason: Optional[str] = None
    entry: Optional[WaitlistEntry] = None
    # Names of checks skipped because their query failed
    indeterminate_checks: List[str] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.outcome == 'accept'

    @property
    def is_duplicate(self) -> bool:
        return self.outcome == 'duplicate'

    @property
    def rejected(self) -> bool:
        return self.outcome == 'reject'


def mask_email(email: str) -> str:
    """j***@example.com, for logs"""
    local_part, domain = split_email(email)
    if not domain:
        return '***'
    return f"{local_part[:1]}***@{domain}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AdmissionGate:
    """
    Decide accept / duplicate / reject for waitlist signups.

    Args:
        waitlist_store: exists(email) and insert(entry), see services.waitlist_store
        rate_limit_store: windowed count queries, see services.rate_limit_store
        ledger: record(...) for rejected attempts, see services.attempt_ledger
        notifier: optional notify(email, business_type, source) called after a new insert
        policy: thresholds and the disposable-domain list
        clock: returns the current UTC time; injectable for tests
    """

    def __init__(self, waitlist_store, rate_limit_store, ledger, notifier=None,
                 policy: Optional[SpamPolicy] = None, clock: Optional[Callable[[], datetime]] = None):
        self.waitlist_store = waitlist_store
        self.rate_limit_store = rate_limit_store
        self.ledger = ledger
        self.notifier = notifier
        self.policy = policy or SpamPolicy()
        self.clock = clock or _utcnow

    # ---- public API ----

    def evaluate(self, attempt: SignupAttempt) -> AdmissionResult:
        """Run the checks without writing a waitlist entry. Rejections are recorded in the ledger."""
        if attempt.timestamp is None:
            attempt.timestamp = self.clock()

        classification = classify_email(
            attempt.email,
            disposable_domains=self.policy.disposable_domains,
            short_domain_allowlist=self.policy.short_domain_allowlist,
        )

        # Malformed input is a validation error: no storage access, no ledger row
        if not classification.format_valid:
            log_event('waitlist.invalid_format', email=mask_email(attempt.email), ip=attempt.ip_address)
            return AdmissionResult('reject', reason=REASON_INVALID_FORMAT)

        try:
            already_registered = self.waitlist_store.exists(attempt.email)
        except Exception as e:
            raise GateStorageError("Could not check waitlist for existing email") from e

        if already_registered:
            return self._duplicate(attempt, route='precheck')

        skipped = []
        for check in self._policy_checks(classification):
            result = check(attempt)
            if result.status == 'indeterminate':
                skipped.append(result.name)
                log_warning(
                    f"Waitlist check '{result.name}' skipped (fail open) for ip={attempt.ip_address}: {result.cause}"
                )
            elif result.blocks:
                return self._reject(attempt, result.reason, skipped)

        return AdmissionResult('accept', indeterminate_checks=skipped)

    def admit(self, attempt: SignupAttempt) -> AdmissionResult:
        """evaluate(), then insert on accept and fire the notification"""
        result = self.evaluate(attempt)
        if not result.accepted:
            return result

        entry = WaitlistEntry(
            email=attempt.email,
            business_type=attempt.business_type,
            source=attempt.source,
            ip_address=attempt.ip_address,
            user_agent=attempt.user_agent,
            created_at=attempt.timestamp,
        )
        try:
            self.waitlist_store.insert(entry)
        except DuplicateEmailError:
            # Lost the race with a concurrent signup for the same address
            return self._duplicate(attempt, route='insert')
        except Exception as e:
            raise GateStorageError("Could not insert waitlist entry") from e

        log_event('waitlist.accepted', entry_id=entry.id, email=mask_email(entry.email),
                  ip=entry.ip_address, source=entry.source,
                  skipped=','.join(result.indeterminate_checks) or None)
        self._notify(entry)
        return AdmissionResult('accept', entry=entry, indeterminate_checks=result.indeterminate_checks)

    # ---- checks, in pipeline order ----

    def _policy_checks(self, classification: EmailClassification):
        return [
            self._check_ip_hourly_limit,
            self._check_ip_daily_limit,
            lambda attempt: self._check_email_reputation(classification),
            self._check_user_agent,
            self._check_emails_per_ip,
            self._check_similar_local_parts,
        ]

    def _check_ip_hourly_limit(self, attempt: SignupAttempt) -> CheckResult:
        name = 'ip_hourly_limit'
        if not attempt.has_known_ip:
            return CheckResult.passed(name)
        return self._threshold_check(
            name,
            lambda: self.rate_limit_store.count_by_ip_since(attempt.ip_address, attempt.timestamp - ONE_HOUR),
            self.policy.submissions_per_hour,
            REASON_RATE_LIMIT_HOUR,
        )

    def _check_ip_daily_limit(self, attempt: SignupAttempt) -> CheckResult:
        name = 'ip_daily_limit'
        if not attempt.has_known_ip:
            return CheckResult.passed(name)
        return self._threshold_check(
            name,
            lambda: self.rate_limit_store.count_by_ip_since(attempt.ip_address, attempt.timestamp - ONE_DAY),
            self.policy.submissions_per_day,
            REASON_RATE_LIMIT_DAY,
        )

    def _check_email_reputation(self, classification: EmailClassification) -> CheckResult:
        name = 'email_reputation'
        if classification.is_disposable:
            return CheckResult.failed(name, REASON_DISPOSABLE_EMAIL)
        if classification.is_suspicious:
            return CheckResult.failed(name, REASON_SUSPICIOUS_EMAIL)
        return CheckResult.passed(name)

    def _check_user_agent(self, attempt: SignupAttempt) -> CheckResult:
        name = 'user_agent'
        if is_suspicious_user_agent(attempt.user_agent):
            return CheckResult.failed(name, REASON_SUSPICIOUS_USER_AGENT)
        return CheckResult.passed(name)

    def _check_emails_per_ip(self, attempt: SignupAttempt) -> CheckResult:
        name = 'emails_per_ip'
        if not attempt.has_known_ip:
            return CheckResult.passed(name)
        return self._threshold_check(
            name,
            lambda: self.rate_limit_store.count_distinct_emails_by_ip_since(
                attempt.ip_address, attempt.timestamp - ONE_DAY
            ),
            self.policy.unique_emails_per_ip_per_day,
            REASON_TOO_MANY_EMAILS_PER_IP,
        )

    def _check_similar_local_parts(self, attempt: SignupAttempt) -> CheckResult:
        name = 'similar_local_parts'
        local_part = attempt.local_part
        if len(local_part) < self.policy.min_similar_local_part_length:
            return CheckResult.passed(name)
        return self._threshold_check(
            name,
            lambda: self.rate_limit_store.count_similar_local_part_since(local_part, attempt.timestamp - ONE_DAY),
            self.policy.similar_emails_per_day,
            REASON_SIMILAR_EMAILS,
        )

    @staticmethod
    def _threshold_check(name: str, count: Callable[[], int], threshold: int, reason: str) -> CheckResult:
        try:
            observed = count()
        except Exception as e:
            return CheckResult.indeterminate(name, e)
        if observed >= threshold:
            return CheckResult.failed(name, reason)
        return CheckResult.passed(name)

    # ---- outcomes ----

    def _duplicate(self, attempt: SignupAttempt, route: str) -> AdmissionResult:
        """Single exit for both duplicate routes (pre-check hit and unique-violation on insert)"""
        log_event('waitlist.duplicate', route=route, email=mask_email(attempt.email), ip=attempt.ip_address)
        return AdmissionResult('duplicate')

    def _reject(self, attempt: SignupAttempt, reason: str, skipped: List[str]) -> AdmissionResult:
        try:
            self.ledger.record(attempt.ip_address, attempt.email, attempt.user_agent, reason, attempt.timestamp)
        except Exception as e:
            log_error(f"Failed to record blocked waitlist attempt (reason={reason})", e)
        log_event('waitlist.rejected', reason=reason,
                  email=mask_email(attempt.email), ip=attempt.ip_address)
        return AdmissionResult('reject', reason=reason, indeterminate_checks=skipped)

    def _notify(self, entry: WaitlistEntry):
        if self.notifier is None:
            return
        try:
            self.notifier.notify(entry.email, entry.business_type, entry.source)
        except Exception as e:
            log_error("Waitlist notification failed", e)
