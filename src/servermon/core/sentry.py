"""Sentry error tracking configuration and initialization."""

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.utils import BadDsn

from servermon.core.config import Settings
from servermon.core.logging import get_logger

logger = get_logger(__name__)

_SENSITIVE_HEADERS = {"cookie", "set-cookie", "authorization"}

# Guard against multiple initializations
_sentry_initialized = False


def init_sentry(settings: Settings) -> bool:
    """
    Initialize Sentry SDK when a valid SENTRY_DSN is configured.

    Returns True if error tracking is active. No DSN, a placeholder DSN or an
    invalid DSN leave it disabled.
    """
    global _sentry_initialized

    if _sentry_initialized:
        return True

    dsn = (settings.sentry_dsn or "").strip()
    if not dsn:
        logger.info("sentry.disabled", message="Sentry DSN not found, error tracking disabled")
        return False

    if not dsn.startswith(("https://", "http://")):
        logger.info(
            "sentry.disabled",
            message="Sentry DSN appears to be invalid or placeholder, error tracking disabled",
        )
        return False

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=settings.environment,
            traces_sample_rate=0.0,
            send_default_pii=False,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                LoggingIntegration(level=None, event_level=None),  # structlog handles logs
            ],
            before_send=_filter_sensitive_data,
        )
    except BadDsn as exc:
        logger.warning("sentry.init_failed", error=str(exc))
        return False

    _sentry_initialized = True
    logger.info("sentry.initialized", environment=settings.environment)
    return True


def _filter_sensitive_data(event: dict, hint: dict) -> dict:
    """Drop session cookies and auth headers from request data."""
    request = event.get("request")
    if isinstance(request, dict):
        request.pop("cookies", None)
        headers = request.get("headers")
        if isinstance(headers, dict):
            request["headers"] = {
                key: value for key, value in headers.items() if key.lower() not in _SENSITIVE_HEADERS
            }
    return event


def capture_exception(exc: BaseException) -> None:
    """Report an exception if Sentry is active."""
    if _sentry_initialized:
        sentry_sdk.capture_exception(exc)


def flush(timeout: float = 2.0) -> None:
    """Send pending events before the process exits."""
    if _sentry_initialized:
        sentry_sdk.flush(timeout=timeout)
