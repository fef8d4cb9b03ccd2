"""User-agent heuristics for spotting scripted waitlist signups"""
import re

UNKNOWN_USER_AGENT = 'unknown'
MIN_USER_AGENT_LENGTH = 10

# Broad on purpose; some unusual real browsers will match too
SUSPICIOUS_USER_AGENT_MARKERS = (
    'bot', 'crawler', 'spider', 'scraper', 'curl', 'wget',
    'python', 'java', 'perl', 'php', 'ruby',
    'http', 'request', 'client', 'library',
    'automated', 'script', 'tool', 'utility',
    'test', 'check', 'monitor', 'scan',
)

_SUSPICIOUS_PATTERN = re.compile('|'.join(re.escape(m) for m in SUSPICIOUS_USER_AGENT_MARKERS), re.IGNORECASE)


def is_suspicious_user_agent(user_agent: str) -> bool:
    """True if the user agent is missing, too short, or names an automation tool"""
    if not user_agent or user_agent == UNKNOWN_USER_AGENT:
        return True
    if len(user_agent) < MIN_USER_AGENT_LENGTH:
        return True
    return bool(_SUSPICIOUS_PATTERN.search(user_agent))
