"""Auth-state observer registry.

Callbacks run in subscription order. A callback that raises is logged and
skipped; the remaining callbacks still receive the event.
"""

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
SESSION_EXPIRED = "SESSION_EXPIRED"
USER_UPDATED = "USER_UPDATED"
PASSWORD_CHANGED = "PASSWORD_CHANGED"
EMAIL_CONFIRMED = "EMAIL_CONFIRMED"

AuthCallback = Callable[[str, Any], None]


class Subscription:
    def __init__(self, registry: "AuthEvents", callback: AuthCallback):
        self._registry = registry
        self.callback = callback

    def unsubscribe(self) -> None:
        self._registry.unsubscribe(self.callback)


class AuthEvents:
    def __init__(self):
        self._callbacks: list[AuthCallback] = []

    def subscribe(self, callback: AuthCallback) -> Subscription:
        if callback not in self._callbacks:
            self._callbacks.append(callback)
        return Subscription(self, callback)

    def unsubscribe(self, callback: AuthCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def publish(self, event: str, payload: Any = None) -> None:
        for callback in list(self._callbacks):
            try:
                callback(event, payload)
            except Exception:
                logger.exception("Auth callback failed for event %s", event)

    def __len__(self) -> int:
        return len(self._callbacks)


# process-wide registry used by the API's session managers
auth_events = AuthEvents()
