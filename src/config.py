"""
Runtime configuration for the expiry reminder Lambda.

All settings are read once from environment variables into an immutable
AppConfig, which is then passed explicitly to the store, sender and job.
Missing required settings raise ConfigurationError instead of falling back
to placeholder clients.
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_REGION = 'us-west-2'
DEFAULT_MAX_WORKERS = 4
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0
DEFAULT_RUN_TIMEOUT_SECONDS = 240.0


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


@dataclass(frozen=True)
class AppConfig:
    """
    Settings for one job invocation.

    Attributes:
        supabase_url: Base URL of the Supabase project (https://<ref>.supabase.co)
        supabase_service_key: Service-role key used for PostgREST reads
        email_sender: Sender identity, e.g. "Expiry Tracker <reminders@example.com>"
        app_base_url: Base URL of the web app, used for the login link
        ses_region: AWS region of the SES endpoint
        max_workers: Upper bound on users processed concurrently (1 = sequential)
        request_timeout: Per-call timeout in seconds for store and email calls
        run_timeout: Overall run deadline in seconds (None = no deadline)
        environment: Deployment environment name
        log_level: Root log level name
    """
    supabase_url: str
    supabase_service_key: str
    email_sender: str
    app_base_url: str
    ses_region: str = DEFAULT_REGION
    max_workers: int = DEFAULT_MAX_WORKERS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    run_timeout: Optional[float] = DEFAULT_RUN_TIMEOUT_SECONDS
    environment: str = 'dev'
    log_level: str = 'INFO'


def derive_app_base_url(supabase_url: str) -> str:
    """
    Derive the web app URL from the Supabase project URL.

    The app is deployed under the same project name on Vercel, so
    https://abc.supabase.co maps to https://abc.vercel.app.

    Args:
        supabase_url: Supabase project URL

    Returns:
        str: Base URL of the web app
    """
    host = urlparse(supabase_url).netloc or supabase_url
    project = host.replace('.supabase.co', '')
    return f"https://{project}.vercel.app"


def _require(environ: Mapping[str, str], name: str) -> str:
    value = (environ.get(name) or '').strip()
    if not value:
        raise ConfigurationError(f"{name} environment variable is required but not set")
    return value


def _read_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got: '{raw}'")
    if value < 1:
        raise ConfigurationError(f"{name} must be at least 1, got: {value}")
    return value


def _read_seconds(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number of seconds, got: '{raw}'")
    if value < 0:
        raise ConfigurationError(f"{name} cannot be negative, got: {value}")
    return value


def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Build AppConfig from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        AppConfig: Validated configuration

    Raises:
        ConfigurationError: If a required variable is missing or a value is malformed
    """
    if environ is None:
        environ = os.environ

    supabase_url = _require(environ, 'SUPABASE_URL')
    if not supabase_url.startswith(('https://', 'http://')):
        raise ConfigurationError(
            f"SUPABASE_URL has invalid format. Expected an http(s) URL, "
            f"got: '{supabase_url[:50]}'"
        )

    service_key = _require(environ, 'SUPABASE_SERVICE_ROLE_KEY')
    email_sender = _require(environ, 'EMAIL_SENDER')

    app_base_url = (environ.get('APP_BASE_URL') or '').strip()
    if not app_base_url:
        app_base_url = derive_app_base_url(supabase_url)
        logger.info(f"APP_BASE_URL not set, using derived URL: {app_base_url}")

    region = (
        environ.get('SES_REGION')
        or environ.get('AWS_REGION')
        or environ.get('AWS_DEFAULT_REGION')
        or DEFAULT_REGION
    )

    run_timeout = _read_seconds(environ, 'RUN_TIMEOUT_SECONDS', DEFAULT_RUN_TIMEOUT_SECONDS)

    log_level = environ.get('LOG_LEVEL', 'INFO').strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigurationError(f"LOG_LEVEL is not a valid log level: '{log_level}'")

    return AppConfig(
        supabase_url=supabase_url.rstrip('/'),
        supabase_service_key=service_key,
        email_sender=email_sender,
        app_base_url=app_base_url.rstrip('/'),
        ses_region=region,
        max_workers=_read_int(environ, 'MAX_WORKERS', DEFAULT_MAX_WORKERS),
        request_timeout=_read_seconds(
            environ, 'REQUEST_TIMEOUT_SECONDS', DEFAULT_REQUEST_TIMEOUT_SECONDS
        ) or DEFAULT_REQUEST_TIMEOUT_SECONDS,
        run_timeout=run_timeout or None,
        environment=environ.get('ENVIRONMENT', 'dev'),
        log_level=log_level,
    )
