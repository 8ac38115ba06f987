"""Operator notifications: chat webhook, SNS topic, or log only.

Every notifier swallows its own delivery failures after logging them, so a
broken webhook never turns into a failed failover.
"""

import logging

import requests
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

# SNS rejects subjects longer than 100 characters.
_MAX_SUBJECT = 100


def _compose(message: str, detail: str = None) -> str:
    return f'{message}\n{detail}' if detail else message


class LogNotifier:
    """Fallback used when no delivery channel is configured."""

    def notify(self, message: str, detail: str = None) -> bool:
        logger.warning('Notification (no channel configured): %s', _compose(message, detail))
        return True


class WebhookNotifier:
    """Post ``{"text": ...}`` to a Slack-compatible incoming webhook."""

    def __init__(self, url: str, timeout: float = 10, session=None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def notify(self, message: str, detail: str = None) -> bool:
        try:
            resp = self.session.post(self.url, json={'text': _compose(message, detail)},
                                     timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning('Webhook notification failed: %s', e)
            return False
        if not resp.ok:
            logger.warning('Webhook notification rejected: %s - %s', resp.status_code, resp.text[:200])
            return False
        return True


class SnsNotifier:
    """Publish to an SNS topic whose subscriptions reach the operators."""

    def __init__(self, sns_client, topic_arn: str):
        self.sns = sns_client
        self.topic_arn = topic_arn

    def notify(self, message: str, detail: str = None) -> bool:
        try:
            self.sns.publish(
                TopicArn=self.topic_arn,
                Subject=message.splitlines()[0][:_MAX_SUBJECT],
                Message=_compose(message, detail),
            )
        except (BotoCoreError, ClientError) as e:
            logger.warning('SNS notification failed: %s', e)
            return False
        return True


class FanoutNotifier:
    """Deliver to every configured channel; succeeds if any channel did."""

    def __init__(self, notifiers):
        self.notifiers = list(notifiers)

    def notify(self, message: str, detail: str = None) -> bool:
        delivered = False
        for notifier in self.notifiers:
            if notifier.notify(message, detail):
                delivered = True
        return delivered


def build_notifier(settings, sns_client=None, session=None):
    """Return the notifier for the channels present in settings."""
    notifiers = []
    if settings.webhook_url:
        notifiers.append(WebhookNotifier(settings.webhook_url, settings.http_timeout, session))
    if settings.notify_topic_arn and sns_client is not None:
        notifiers.append(SnsNotifier(sns_client, settings.notify_topic_arn))
    if not notifiers:
        return LogNotifier()
    if len(notifiers) == 1:
        return notifiers[0]
    return FanoutNotifier(notifiers)
