"""
Login throttling.

Failed logins are tracked per client IP and per email:
- IP: ``ip_max_attempts`` failures within the window → lockout
- email: ``email_max_attempts`` failures within the window → lockout
- progressive delay of 1s, 2s, 4s (capped) once an IP has 3 failures

In-memory and per process.
"""

import time
from collections import defaultdict
from dataclasses import dataclass, field

import structlog

from eduaudit.config import settings
from eduaudit.errors import RateLimited

logger = structlog.get_logger(__name__)


@dataclass
class FailureWindow:
    """Failed attempt timestamps for one key (IP or email)."""

    attempts: list[float] = field(default_factory=list)
    locked_until: float = 0.0

    def add(self, now: float, window_seconds: float) -> int:
        cutoff = now - window_seconds
        self.attempts = [t for t in self.attempts if t > cutoff]
        self.attempts.append(now)
        return len(self.attempts)

    def remaining_lock(self, now: float) -> int:
        return max(0, int(self.locked_until - now))


class LoginThrottle:
    """Per-IP and per-email lockouts for the login route."""

    def __init__(
        self,
        ip_max_attempts: int | None = None,
        email_max_attempts: int | None = None,
        window_seconds: float | None = None,
        lockout_seconds: float | None = None,
        clock=time.monotonic,
    ):
        self.ip_max = ip_max_attempts or settings.login_ip_max_attempts
        self.email_max = email_max_attempts or settings.login_email_max_attempts
        self.lockout = lockout_seconds or settings.login_lockout_seconds
        self.window = window_seconds or self.lockout
        self._clock = clock
        self._by_ip: dict[str, FailureWindow] = defaultdict(FailureWindow)
        self._by_email: dict[str, FailureWindow] = defaultdict(FailureWindow)

    def check(self, ip: str, email: str | None = None) -> None:
        """Raise RateLimited while the IP or the email is locked out."""
        now = self._clock()
        remaining = self._by_ip[ip].remaining_lock(now) if ip in self._by_ip else 0
        if remaining:
            logger.warning("login_blocked", ip=ip, reason="ip_locked")
            raise RateLimited("Too many failed attempts from this IP", retry_after=remaining)

        if email:
            key = email.strip().lower()
            remaining = self._by_email[key].remaining_lock(now) if key in self._by_email else 0
            if remaining:
                logger.warning("login_blocked", ip=ip, reason="email_locked")
                raise RateLimited("Account temporarily locked", retry_after=remaining)

    def record_failure(self, ip: str, email: str | None = None) -> None:
        now = self._clock()
        ip_window = self._by_ip[ip]
        if ip_window.add(now, self.window) >= self.ip_max:
            ip_window.locked_until = now + self.lockout
            logger.warning("login_ip_locked", ip=ip, failures=len(ip_window.attempts))

        if email:
            key = email.strip().lower()
            email_window = self._by_email[key]
            if email_window.add(now, self.window) >= self.email_max:
                email_window.locked_until = now + self.lockout
                logger.warning("login_email_locked", failures=len(email_window.attempts))

    def record_success(self, ip: str, email: str | None = None) -> None:
        self._by_ip.pop(ip, None)
        if email:
            self._by_email.pop(email.strip().lower(), None)

    def progressive_delay(self, ip: str) -> float:
        window = self._by_ip.get(ip)
        if window is None or len(window.attempts) < 3:
            return 0.0
        return float(2 ** min(len(window.attempts) - 3, 2))
