import logging

import requests

logger = logging.getLogger('main')


class DiscordNotifier:
    """Posts watcher messages to a Discord webhook. A missing URL disables it."""

    def __init__(self, webhook_url=None, timeout=5, session=None):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.session = session or requests

    def notify(self, message):
        if not self.webhook_url:
            return False

        try:
            response = self.session.post(self.webhook_url, json={"content": message}, timeout=self.timeout)
            response.raise_for_status()
            logger.info("Discord notification sent.")
            return True
        except requests.exceptions.RequestException as e:
            logger.error(f"Discord notify failed: {e}")
            return False
