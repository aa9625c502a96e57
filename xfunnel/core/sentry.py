"""Sentry error tracking integration.

Initializes Sentry SDK if SENTRY_DSN env variable is set and tags events
with the reporting calendar and the company being aggregated.
"""

import logging

from xfunnel.core.config import settings

logger = logging.getLogger(__name__)


def _traces_sample_rate() -> float:
    if settings.sentry_traces_sample_rate is not None:
        return settings.sentry_traces_sample_rate
    return 0.1 if settings.app_env == "production" else 1.0


def init_sentry() -> bool:
    """Initialize Sentry if SENTRY_DSN is configured. Returns True when enabled."""
    if not settings.sentry_dsn:
        logger.debug("Sentry DSN not configured, skipping")
        return False

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        release=settings.sentry_release,
        traces_sample_rate=_traces_sample_rate(),
        send_default_pii=False,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
    )
    sentry_sdk.set_tag("report_timezone", settings.report_timezone)
    sentry_sdk.set_tag("default_granularity", settings.default_granularity)
    logger.info("Sentry initialized (env=%s, release=%s)", settings.app_env, settings.sentry_release)
    return True


def tag_company(company_id: int) -> None:
    """Attach the aggregated company to events raised in the current scope."""
    if not settings.sentry_dsn:
        return

    import sentry_sdk

    sentry_sdk.set_tag("company_id", str(company_id))
