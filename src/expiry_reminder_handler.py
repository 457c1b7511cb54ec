"""
AWS Lambda handler for the nightly "items expiring tomorrow" reminder.

Thin orchestration layer that builds the store, sender and job from
configuration and delegates to ExpiryDigestJob.
Invoked by a scheduled rule (no HTTP method) or over HTTP (API Gateway or a
function URL). OPTIONS preflight requests are answered without running.
"""

import json
import os
import logging
from typing import Dict, Any, Optional

from config import AppConfig, ConfigurationError, load_config
from domain.digest_job import ExpiryDigestJob, UserDirectoryError
from integrations.supabase_store import SupabaseStore
from services.ses import SesEmailSender

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Add console handler for local testing (AWS Lambda provides handlers automatically)
if not logger.handlers:
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG)
    formatter = logging.Formatter('%(levelname)s - %(name)s - %(message)s')
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
}


def _request_method(event: Dict[str, Any]) -> Optional[str]:
    """HTTP method of an API Gateway v1/v2 or function URL event, None for scheduled events."""
    method = event.get('httpMethod')
    if not method:
        method = event.get('requestContext', {}).get('http', {}).get('method')
    return method.upper() if method else None


def _text_response(status_code: int, text: str) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'text/plain', **CORS_HEADERS},
        'body': text
    }


def run_digest(config: AppConfig):
    """
    Build collaborators for one run, execute the job and release them.

    Args:
        config: Loaded configuration

    Returns:
        RunSummary of the run

    Raises:
        UserDirectoryError: If the user list cannot be fetched
    """
    store = SupabaseStore.from_config(config)
    try:
        sender = SesEmailSender.from_config(config)
        job = ExpiryDigestJob.from_config(config, store, sender)
        return job.run()
    finally:
        store.close()


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Send expiry reminders to every user with items expiring tomorrow.

    Args:
        event: Scheduled event or HTTP event
        context: Lambda context

    Returns:
        Dict with statusCode 200 and {message, details} on completion,
        statusCode 500 with a plain-text body on fatal errors
    """
    event = event or {}
    method = _request_method(event)

    if method == 'OPTIONS':
        return {'statusCode': 200, 'headers': dict(CORS_HEADERS), 'body': ''}

    try:
        config = load_config()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return _text_response(500, f"Configuration error: {e}")

    logging.getLogger().setLevel(config.log_level)

    logger.info("=" * 70)
    logger.info("Expiry Reminder - Started")
    logger.info(f"Environment: {config.environment}, trigger: {method or 'scheduled'}")
    logger.info("=" * 70)

    try:
        summary = run_digest(config)
    except UserDirectoryError as e:
        logger.error(f"Aborting run: {e}")
        return _text_response(500, "Failed to fetch users")
    except Exception as e:
        logger.error(f"Unexpected error during reminder run: {e}", exc_info=True)
        return _text_response(500, "Internal server error")

    logger.info("=" * 70)
    logger.info(f"Run complete: {summary.message}")
    logger.info(f"  Sent: {summary.sent}")
    logger.info(f"  Errors: {summary.failures}")
    logger.info("=" * 70)

    return {
        'statusCode': 200,
        'headers': {'Content-Type': 'application/json', **CORS_HEADERS},
        'body': json.dumps(summary.to_response_body())
    }


def health_check(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Simple health check endpoint for monitoring.
    """
    try:
        config = load_config()
        environment = config.environment
        configured = True
    except ConfigurationError as e:
        logger.warning(f"Health check: {e}")
        environment = os.environ.get('ENVIRONMENT', 'dev')
        configured = False

    return {
        'statusCode': 200,
        'headers': {'Content-Type': 'application/json', **CORS_HEADERS},
        'body': json.dumps({
            'status': 'healthy',
            'environment': environment,
            'configured': configured
        })
    }
