"""Slack notifications for new waitlist signups"""
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Optional

import requests

from services.admission_gate import DEFAULT_SOURCE
from utils.logger import log_error, log_info, log_warning

SLACK_TIMEOUT_SECONDS = float(os.environ.get('SLACK_TIMEOUT_SECONDS', '5'))
PRODUCT_NAME = os.environ.get('PRODUCT_NAME', 'My Job Track')
MAX_PENDING_NOTIFICATIONS = int(os.environ.get('SLACK_MAX_PENDING_NOTIFICATIONS', '100'))


def build_waitlist_signup_message(email: str, business_type: Optional[str] = None,
                                  source: str = DEFAULT_SOURCE,
                                  signed_up_at: Optional[datetime] = None) -> dict:
    """Slack Block Kit payload announcing a signup"""
    signed_up_at = signed_up_at or datetime.now(timezone.utc)
    title = f"🎉 New {PRODUCT_NAME} Waitlist Signup!"
    return {
        'text': f"🎉 *New {PRODUCT_NAME} Waitlist Signup!*",
        'username': f"{PRODUCT_NAME} Bot",
        'icon_emoji': ':briefcase:',
        'blocks': [
            {
                'type': 'header',
                'text': {'type': 'plain_text', 'text': title, 'emoji': True}
            },
            {
                'type': 'section',
                'fields': [
                    {'type': 'mrkdwn', 'text': f"*Email:*\n{email}"},
                    {'type': 'mrkdwn', 'text': f"*Business Type:*\n{business_type or 'Not specified'}"},
                    {'type': 'mrkdwn', 'text': f"*Source:*\n{source}"},
                    {'type': 'mrkdwn', 'text': f"*Date:*\n{signed_up_at.strftime('%Y-%m-%d %H:%M UTC')}"},
                ]
            },
            {'type': 'divider'},
            {
                'type': 'context',
                'elements': [
                    {
                        'type': 'mrkdwn',
                        'text': f"📬 *Action Required:* Follow up with {email} to provide updates on launch timeline."
                    }
                ]
            }
        ]
    }


class SlackNotifier:
    """Posts signup messages to an incoming webhook. notify() never raises."""

    def __init__(self, webhook_url: Optional[str] = None, timeout: float = SLACK_TIMEOUT_SECONDS):
        self.webhook_url = webhook_url if webhook_url is not None else os.environ.get('SLACK_WEBHOOK_URL', '')
        self.timeout = timeout

    def notify(self, email: str, business_type: Optional[str] = None, source: str = DEFAULT_SOURCE) -> bool:
        if not self.webhook_url:
            log_warning("SLACK_WEBHOOK_URL not configured, skipping waitlist notification")
            return False

        try:
            response = requests.post(
                self.webhook_url,
                json=build_waitlist_signup_message(email, business_type, source),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            log_error("Error sending Slack notification", e)
            return False

        if not response.ok:
            log_error(f"Failed to send Slack notification: {response.status_code} {response.reason}")
            return False

        log_info("Slack notification sent successfully")
        return True


class BackgroundNotifier:
    """
    Fire-and-forget wrapper: hands notify() to a small thread pool and returns
    immediately. Worker failures are drained into the log, never joined.

    At most max_pending notifications may be queued or running; further ones
    are dropped with a warning.
    """

    def __init__(self, notifier, max_workers: int = 2, max_pending: int = MAX_PENDING_NOTIFICATIONS):
        self.notifier = notifier
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='waitlist-notify')
        self._slots = threading.BoundedSemaphore(max_pending)

    def notify(self, email: str, business_type: Optional[str] = None, source: str = DEFAULT_SOURCE) -> bool:
        if not self._slots.acquire(blocking=False):
            log_warning("Waitlist notification queue full, dropping notification")
            return False
        try:
            future = self.executor.submit(self.notifier.notify, email, business_type, source)
        except RuntimeError as e:
            # Executor already shut down
            self._slots.release()
            log_error("Could not dispatch waitlist notification", e)
            return False
        future.add_done_callback(self._finished)
        return True

    def _finished(self, future: Future):
        self._slots.release()
        _log_notification_failure(future)

    def shutdown(self, wait: bool = True):
        self.executor.shutdown(wait=wait)


def _log_notification_failure(future: Future):
    error = future.exception()
    if error is not None:
        log_error("Waitlist notification worker failed", error)
    elif future.result() is False:
        log_warning("Waitlist notification was not delivered")
