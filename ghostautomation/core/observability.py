"""
Logfire observability configuration for Ghost Automation.

Provides tracing for kernel stages:
- Scoring runs and planning
- Queue transitions
- Generator calls
- Lead bridge runs

Usage:
    # At app startup (CLI or API)
    from ghostautomation.core.observability import setup_logfire
    setup_logfire()

    # In services
    with kernel_span("score_products", records=len(records)):
        ...

Environment Variables:
    LOGFIRE_TOKEN: Your Logfire write token (required for production)
    LOGFIRE_PROJECT_NAME: Project name in Logfire dashboard
    LOGFIRE_ENVIRONMENT: Environment name (development, staging, production)
"""

import os
import logging
from contextlib import nullcontext
from typing import Optional

import logfire

logger = logging.getLogger(__name__)

_logfire_configured = False


def setup_logfire(
    project_name: Optional[str] = None,
    environment: Optional[str] = None,
    service_name: str = "ghostautomation"
) -> bool:
    """
    Configure Logfire for observability.

    Args:
        project_name: Logfire project name (or LOGFIRE_PROJECT_NAME env var)
        environment: Environment name (or LOGFIRE_ENVIRONMENT env var)
        service_name: Service name for tracing

    Returns:
        True if Logfire was configured, False if skipped (no token)
    """
    global _logfire_configured

    if _logfire_configured:
        logger.debug("Logfire already configured")
        return True

    token = os.environ.get("LOGFIRE_TOKEN")
    if not token:
        logger.info("LOGFIRE_TOKEN not set, skipping Logfire configuration")
        return False

    project = project_name or os.environ.get("LOGFIRE_PROJECT_NAME", "ghostautomation")
    env = environment or os.environ.get("LOGFIRE_ENVIRONMENT", "development")

    try:
        logfire.configure(
            token=token,
            project_name=project,
            service_name=service_name,
            environment=env,
            send_to_logfire=True,
        )

        # Instrument Pydantic for validation tracing
        logfire.instrument_pydantic()

        _logfire_configured = True
        logger.info(f"Logfire configured: project={project}, environment={env}")
        return True

    except Exception as e:
        logger.error(f"Failed to configure Logfire: {e}")
        return False


def is_logfire_configured() -> bool:
    return _logfire_configured


def kernel_span(name: str, **attributes):
    """
    Span context for a kernel stage.

    Returns a logfire span once setup_logfire() succeeded, otherwise a
    null context so unconfigured processes emit nothing.
    """
    if _logfire_configured:
        return logfire.span(name, **attributes)
    return nullcontext()
