"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/auth.py (to apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import Settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


class LoginRateLimit:
    """Limit string for POST /auth/login.

    slowapi evaluates a callable limit on every request but gives it no access
    to the request, so the value is bound from the app's Settings at startup
    via configure(). Until then the Settings default applies.
    """

    def __init__(self) -> None:
        self.value: str = Settings.model_fields["login_rate_limit"].default

    def configure(self, settings: Settings) -> None:
        self.value = settings.login_rate_limit

    def __call__(self) -> str:
        return self.value


login_rate_limit = LoginRateLimit()
