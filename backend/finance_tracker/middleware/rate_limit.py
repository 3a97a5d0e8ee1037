"""
middleware/rate_limit.py — Per-route rate limits.

Limits are counted by Flask-Limiter (extensions.limiter) against the client
address. With the default memory:// storage each worker process keeps its
own counters; point RATELIMIT_STORAGE_URI at redis:// to share them.

Configured limits:
  login           5 per 15 minutes
  register        3 per hour
  password_reset  3 per hour (forgot-password and reset-password share it)
  user_search     20 per minute

A breached limit raises flask_limiter.RateLimitExceeded, rendered by the
app's error handler as RATE_LIMITED (429) with the message below.

Disabled entirely when RATELIMIT_ENABLED is false (the testing config).

Usage:
    @auth_bp.route("/login", methods=["POST"])
    @login_limit
    def login():
        ...
"""

from __future__ import annotations

from dataclasses import dataclass

from backend.finance_tracker.extensions import limiter


@dataclass(frozen=True)
class RateLimitConfig:
    """A limit string in Flask-Limiter notation and the message sent on breach."""

    limit: str
    message: str


RATE_LIMITS: dict[str, RateLimitConfig] = {
    "login": RateLimitConfig(
        "5 per 15 minutes", "Too many login attempts, please try again later."),
    "register": RateLimitConfig(
        "3 per hour", "Too many registration attempts, please try again later."),
    "password_reset": RateLimitConfig(
        "3 per hour", "Too many password reset attempts, please try again later."),
    "user_search": RateLimitConfig(
        "20 per minute", "Too many search requests, please try again later."),
}


def _route_limit(name: str):
    config = RATE_LIMITS[name]
    return limiter.limit(config.limit, error_message=config.message)


register_limit = _route_limit("register")
login_limit = _route_limit("login")
user_search_limit = _route_limit("user_search")

# One counter for both halves of the reset flow.
password_reset_limit = limiter.shared_limit(
    RATE_LIMITS["password_reset"].limit,
    scope="password_reset",
    error_message=RATE_LIMITS["password_reset"].message,
)
