"""Waitlist-related business logic"""
from typing import Any, Dict, Optional

from config.spam_policy import load_spam_policy
from services.admission_gate import (
    AdmissionGate,
    DEFAULT_SOURCE,
    REASON_DISPOSABLE_EMAIL,
    REASON_INVALID_FORMAT,
    REASON_RATE_LIMIT_DAY,
    REASON_RATE_LIMIT_HOUR,
    REASON_SIMILAR_EMAILS,
    REASON_SUSPICIOUS_EMAIL,
    REASON_SUSPICIOUS_USER_AGENT,
    REASON_TOO_MANY_EMAILS_PER_IP,
    SignupAttempt,
    UNKNOWN_IP,
)
from services.attempt_ledger import AttemptLedger
from services.notification_service import BackgroundNotifier, SlackNotifier
from services.rate_limit_store import RateLimitStore
from services.user_agent_classifier import UNKNOWN_USER_AGENT
from services.waitlist_store import WaitlistStore
from utils.validation import MAX_EMAIL_LENGTH, sanitize_json_input, sanitize_string

# Same wording for both duplicate routes so responses don't reveal which one fired
DUPLICATE_MESSAGE = "Thank you! This email is already on our waitlist."
SUCCESS_MESSAGE = "Successfully added to waitlist"

REJECTION_MESSAGES = {
    REASON_RATE_LIMIT_HOUR: "Rate limit exceeded. Please try again in an hour.",
    REASON_RATE_LIMIT_DAY: "Rate limit exceeded. Please try again tomorrow.",
    REASON_DISPOSABLE_EMAIL: "Disposable email addresses are not allowed. Please use a permanent email address.",
    REASON_SUSPICIOUS_EMAIL: "This email address looks suspicious. Please use your regular email address.",
    REASON_SUSPICIOUS_USER_AGENT: "Automated requests are not allowed. Please sign up from a regular web browser.",
    REASON_TOO_MANY_EMAILS_PER_IP: "Too many signups from your network today. Please try again later.",
    REASON_SIMILAR_EMAILS: "Multiple similar email addresses detected. Please try again later.",
}
GENERIC_REJECTION_MESSAGE = "Your signup could not be accepted right now. Please try again later."

SIGNUP_SCHEMA = {
    'email': {'type': 'email', 'required': True, 'max_length': MAX_EMAIL_LENGTH},
    'businessType': {'type': 'string', 'max_length': 100},
    'source': {'type': 'string', 'max_length': 100},
}

_gate = None


class SignupRejectedError(Exception):
    """A spam-prevention check refused the signup"""

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        self.message = message or REJECTION_MESSAGES.get(reason, GENERIC_REJECTION_MESSAGE)
        super().__init__(self.message)


def get_admission_gate() -> AdmissionGate:
    """Build the production gate on first use (Supabase stores, Slack in the background)"""
    global _gate
    if _gate is None:
        _gate = AdmissionGate(
            waitlist_store=WaitlistStore(),
            rate_limit_store=RateLimitStore(),
            ledger=AttemptLedger(),
            notifier=BackgroundNotifier(SlackNotifier()),
            policy=load_spam_policy(),
        )
    return _gate


def parse_signup(data: Any) -> Dict[str, Any]:
    """Validate the POST body; raises ValueError for a missing or malformed email"""
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    try:
        return sanitize_json_input(data, SIGNUP_SCHEMA)
    except ValueError as e:
        if "required" in str(e):
            raise ValueError("Email is required") from e
        raise ValueError("Invalid email format") from e


def join_waitlist(email: str, business_type: Optional[str] = None, source: Optional[str] = None,
                  ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> Dict[str, Any]:
    """
    Run a signup through the admission gate.

    Returns:
        dict: response body; 'already_exists' tells the route which status code to use

    Raises:
        ValueError: email missing or malformed
        SignupRejectedError: blocked by a spam-prevention check
        GateStorageError: the waitlist could not be read or written
    """
    attempt = SignupAttempt(
        email=sanitize_string(email) or '',
        ip_address=sanitize_string(ip_address, max_length=100) or UNKNOWN_IP,
        user_agent=sanitize_string(user_agent, max_length=500) or UNKNOWN_USER_AGENT,
        business_type=sanitize_string(business_type, max_length=100) or None,
        source=sanitize_string(source, max_length=100) or DEFAULT_SOURCE,
    )
    if not attempt.email:
        raise ValueError("Email is required")

    result = get_admission_gate().admit(attempt)

    if result.is_duplicate:
        return {
            "success": True,
            "message": DUPLICATE_MESSAGE,
            "already_exists": True
        }

    if result.rejected:
        if result.reason == REASON_INVALID_FORMAT:
            raise ValueError("Invalid email format")
        raise SignupRejectedError(result.reason)

    entry = result.entry
    return {
        "success": True,
        "message": SUCCESS_MESSAGE,
        "data": {
            "id": entry.id,
            "email": entry.email,
            "createdAt": entry.created_at.isoformat()
        },
        "already_exists": False
    }
