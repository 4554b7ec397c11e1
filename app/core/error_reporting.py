from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from app.core.config import Settings, settings
from app.core.logging import get_logger, redact_sensitive_data
from app.core.request_context import get_request_id

logger = get_logger(__name__)

try:
    import sentry_sdk as _sentry_sdk

    sentry_sdk: Any | None = _sentry_sdk
except Exception:  # pragma: no cover - optional dependency
    sentry_sdk = None


def _normalized(values: Sequence[str]) -> set[str]:
    return {value.strip().lower() for value in values if value.strip()}


def _before_send(event: dict[str, Any], _hint: dict[str, Any]) -> dict[str, Any]:
    request_id = get_request_id()
    event.setdefault("tags", {}).setdefault("request_id", request_id)
    extra = event.setdefault("extra", {})
    extra.setdefault("request_id", request_id)
    event["extra"] = redact_sensitive_data(extra)
    return event


def reporting_enabled(config: Settings) -> tuple[bool, str | None]:
    """Decide whether errors should be shipped; returns ``(enabled, reason_if_disabled)``."""
    if not config.sentry_dsn:
        return False, "missing_dsn"
    environment = config.environment.strip().lower()
    if environment not in _normalized(config.sentry_enabled_environments):
        return False, "environment_not_enabled"
    if sentry_sdk is None:
        return False, "sentry_sdk_not_installed"
    return True, None


def configure_error_reporting(config: Settings = settings) -> bool:
    enabled, reason = reporting_enabled(config)
    if not enabled:
        log = logger.warning if reason == "sentry_sdk_not_installed" else logger.info
        log(
            "error_reporting.disabled",
            extra={"reason": reason, "environment": config.environment},
        )
        return False

    sentry_sdk.init(
        dsn=config.sentry_dsn,
        environment=config.sentry_environment or config.environment,
        traces_sample_rate=config.sentry_traces_sample_rate,
        before_send=_before_send,
    )
    logger.info(
        "error_reporting.enabled",
        extra={
            "environment": config.sentry_environment or config.environment,
            "traces_sample_rate": config.sentry_traces_sample_rate,
        },
    )
    return True
