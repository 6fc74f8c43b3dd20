"""
Push notification client.

The application talks to push delivery through a small notifier interface:

    notifier.send(token, {"title": ..., "body": ...}, data=None)

Delivery itself is not handled by this service. The default LoggingNotifier
records what would have been sent; a deployment can install a real provider
with set_notifier(app, notifier) before serving requests.
"""

import logging
from typing import Dict, Any, Optional

from flask import current_app


logger = logging.getLogger('notifications')

_EXTENSION_KEY = 'zeta_push_notifier'


class LoggingNotifier:
    """Notifier that logs each message instead of delivering it."""

    def send(self, token: str, notification: Dict[str, Any], data: Optional[Dict[str, Any]] = None) -> bool:
        if not token:
            return False
        logger.debug(
            f"Push to {token[:12]}...: {notification.get('title')} - {notification.get('body')}"
            + (f" data={data}" if data else "")
        )
        return True


def set_notifier(app, notifier):
    """Install ``notifier`` as the push notifier for ``app``."""
    app.extensions[_EXTENSION_KEY] = notifier


def get_notifier():
    """Return the notifier registered on the current app."""
    notifier = current_app.extensions.get(_EXTENSION_KEY)
    if notifier is None:
        notifier = LoggingNotifier()
        current_app.extensions[_EXTENSION_KEY] = notifier
    return notifier
