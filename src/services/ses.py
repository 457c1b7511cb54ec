"""
Amazon SES operations for sending digest emails.

The sender never raises for provider errors: every outcome is returned as
a SendResult so the caller can count it.
"""

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from domain.models import SendResult

logger = logging.getLogger(__name__)


def create_ses_client(region: str, timeout: float = 10.0) -> Any:
    """
    Create an SES client with strict timeouts and no retries.

    Args:
        region: AWS region of the SES endpoint
        timeout: Connect and read timeout in seconds

    Returns:
        boto3 SES client
    """
    ses_config = Config(
        retries={
            'max_attempts': 1,  # 1 attempt total (no retries)
            'mode': 'standard'
        },
        connect_timeout=timeout,
        read_timeout=timeout
    )
    client = boto3.client('ses', region_name=region, config=ses_config)
    logger.info(
        f"SES client initialized: region={region}, "
        f"connect_timeout={timeout}s, read_timeout={timeout}s, max_attempts=1"
    )
    return client


class SesEmailSender:
    """
    Sends HTML emails through Amazon SES from a fixed sender identity.
    """

    def __init__(self, client: Any, sender: str):
        """
        Args:
            client: boto3 SES client
            sender: Verified SES sender, e.g. "Expiry Tracker <reminders@example.com>"
        """
        if not sender:
            raise ValueError("Sender identity cannot be empty")
        self._client = client
        self.sender = sender

    @classmethod
    def from_config(cls, config) -> 'SesEmailSender':
        """Build a sender with an SES client for the configured region."""
        client = create_ses_client(config.ses_region, timeout=config.request_timeout)
        return cls(client, config.email_sender)

    def send(self, to: str, subject: str, html: str) -> SendResult:
        """
        Send one HTML email.

        Args:
            to: Recipient email address
            subject: Subject line
            html: HTML body

        Returns:
            SendResult with success=True and the SES message id, or
            success=False and the provider error

        Example:
            >>> result = sender.send("a@x.com", "Hello", "<p>Hi</p>")
            >>> result.success
            True
        """
        if not to or '@' not in to:
            logger.error(f"Invalid recipient address: {to!r}")
            return SendResult(success=False, error_message=f"Invalid email address: {to}")

        try:
            response = self._client.send_email(
                Source=self.sender,
                Destination={'ToAddresses': [to]},
                Message={
                    'Subject': {'Data': subject, 'Charset': 'UTF-8'},
                    'Body': {'Html': {'Data': html, 'Charset': 'UTF-8'}},
                }
            )
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            error_message = e.response.get('Error', {}).get('Message', str(e))
            logger.error(
                f"SES rejected email to {to}: "
                f"error_code={error_code}, error_message={error_message}"
            )
            return SendResult(success=False, error_message=f"{error_code}: {error_message}")
        except BotoCoreError as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return SendResult(success=False, error_message=str(e))

        message_id: Optional[str] = response.get('MessageId')
        logger.info(f"Email sent to {to}: message_id={message_id}")
        return SendResult(success=True, message_id=message_id)
