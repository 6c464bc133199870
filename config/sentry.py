# coding: utf-8
"""
Sentry configuration for error monitoring and tracking
"""
import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from loguru import logger

from config.config import SENTRY_DSN, ENVIRONMENT, BOT_HEADER


def init_sentry() -> bool:
    """
    Initialize Sentry SDK for error monitoring

    Returns:
        True if Sentry was initialized, False if disabled or failed
    """
    if not SENTRY_DSN:
        logger.warning("SENTRY_DSN not configured - error monitoring disabled")
        return False

    try:
        sentry_sdk.init(
            dsn=SENTRY_DSN,
            environment=ENVIRONMENT,
            integrations=[
                AsyncioIntegration(),
                SqlalchemyIntegration(),  # Ledger/position queries tracking
            ],
            traces_sample_rate=0.1 if ENVIRONMENT == "production" else 1.0,
            sample_rate=1.0,
            attach_stacktrace=True,
            send_default_pii=False,  # Chat ids and addresses stay out of events
            max_breadcrumbs=50,
            before_send=before_send_hook,
        )

        logger.info(f"Sentry initialized successfully (Environment: {ENVIRONMENT})")
        return True

    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False


def before_send_hook(event, hint):
    """
    Filter/modify events before sending to Sentry
    """
    if 'exc_info' in hint:
        exc_type, exc_value, tb = hint['exc_info']

        if isinstance(exc_value, KeyboardInterrupt):
            return None

    # The bot header is a shared secret
    if event.get('request'):
        headers = event['request'].get('headers', {})
        for name in list(headers):
            if name.lower() == BOT_HEADER.lower():
                headers[name] = '[Filtered]'

    return event
