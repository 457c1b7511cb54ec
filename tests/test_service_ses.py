"""
Tests for the Amazon SES email sender.
"""

import pytest
from unittest.mock import Mock, patch
from botocore.exceptions import ClientError, EndpointConnectionError
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from services import ses

SENDER = "Expiry Tracker <reminders@example.com>"


@pytest.fixture
def mock_ses_client():
    client = Mock()
    client.send_email.return_value = {'MessageId': 'ses-message-123'}
    return client


class TestSesEmailSender:
    """Test sending digest emails through SES."""

    def test_send_success(self, mock_ses_client):
        sender = ses.SesEmailSender(mock_ses_client, SENDER)

        result = sender.send("a@x.com", "Reminder", "<p>Hi</p>")

        assert result.success is True
        assert result.message_id == 'ses-message-123'
        assert result.error_message is None
        mock_ses_client.send_email.assert_called_once_with(
            Source=SENDER,
            Destination={'ToAddresses': ['a@x.com']},
            Message={
                'Subject': {'Data': 'Reminder', 'Charset': 'UTF-8'},
                'Body': {'Html': {'Data': '<p>Hi</p>', 'Charset': 'UTF-8'}},
            }
        )

    def test_send_client_error_returns_failure(self, mock_ses_client):
        mock_ses_client.send_email.side_effect = ClientError(
            {'Error': {'Code': 'MessageRejected', 'Message': 'Email address is not verified.'}},
            'SendEmail'
        )
        sender = ses.SesEmailSender(mock_ses_client, SENDER)

        result = sender.send("a@x.com", "Reminder", "<p>Hi</p>")

        assert result.success is False
        assert result.error_message == "MessageRejected: Email address is not verified."

    def test_send_connection_error_returns_failure(self, mock_ses_client):
        mock_ses_client.send_email.side_effect = EndpointConnectionError(
            endpoint_url="https://email.us-west-2.amazonaws.com"
        )
        sender = ses.SesEmailSender(mock_ses_client, SENDER)

        result = sender.send("a@x.com", "Reminder", "<p>Hi</p>")

        assert result.success is False
        assert "email.us-west-2.amazonaws.com" in result.error_message

    @pytest.mark.parametrize("recipient", ["", None, "not-an-address"])
    def test_invalid_recipient_skips_provider(self, mock_ses_client, recipient):
        sender = ses.SesEmailSender(mock_ses_client, SENDER)

        result = sender.send(recipient, "Reminder", "<p>Hi</p>")

        assert result.success is False
        assert "Invalid email address" in result.error_message
        mock_ses_client.send_email.assert_not_called()

    def test_empty_sender_rejected(self, mock_ses_client):
        with pytest.raises(ValueError, match="Sender identity"):
            ses.SesEmailSender(mock_ses_client, "")


class TestCreateSesClient:
    """Test SES client construction."""

    @patch('services.ses.boto3.client')
    def test_client_configured_without_retries(self, mock_boto_client):
        ses.create_ses_client('eu-west-1', timeout=5)

        args, kwargs = mock_boto_client.call_args
        assert args == ('ses',)
        assert kwargs['region_name'] == 'eu-west-1'
        config = kwargs['config']
        assert config.retries == {'max_attempts': 1, 'mode': 'standard'}
        assert config.connect_timeout == 5
        assert config.read_timeout == 5

    @patch('services.ses.boto3.client')
    def test_from_config(self, mock_boto_client):
        config = Mock(ses_region='us-east-1', request_timeout=7, email_sender=SENDER)

        sender = ses.SesEmailSender.from_config(config)

        assert sender.sender == SENDER
        assert mock_boto_client.call_args.kwargs['region_name'] == 'us-east-1'


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
