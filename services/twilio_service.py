"""
TwilioService - SMS sending and webhook signature checks
"""

from typing import Optional, Dict, Any, Mapping
import requests
from twilio.base.exceptions import TwilioException
from twilio.request_validator import RequestValidator
from services.common.result import Result
from utils.phone_utils import to_e164
from logging_config import get_logger

logger = get_logger(__name__)


class TwilioService:
    """Wraps an explicitly constructed twilio.rest.Client"""

    def __init__(self, client=None, auth_token: Optional[str] = None, from_number: Optional[str] = None):
        """
        Args:
            client: twilio.rest.Client, or None when credentials are missing
            auth_token: Account auth token used to validate webhook signatures
            from_number: Sending phone number in E.164
        """
        self.client = client
        self.auth_token = auth_token
        self.from_number = from_number
        self.validator = RequestValidator(auth_token) if auth_token else None

    def validate_signature(self, url: str, params: Mapping[str, Any], signature: str) -> bool:
        """
        Validate an X-Twilio-Signature header.

        Without a configured auth token there is nothing to validate against
        and the request is accepted.
        """
        if not self.validator:
            logger.warning("TWILIO_AUTH_TOKEN not configured, skipping signature validation")
            return True
        return self.validator.validate(url, dict(params), signature)

    def send_sms(self, to: str, body: str) -> Result[Dict[str, Any]]:
        """
        Send one SMS.

        Returns:
            Result with {'sid', 'status'} or failure SMS_SEND_FAILED / SMS_NOT_CONFIGURED
        """
        if not self.client or not self.from_number:
            return Result.failure("Twilio is not configured", code="SMS_NOT_CONFIGURED")

        to_number = to_e164(to)
        if not to_number:
            return Result.failure("Recipient phone number is missing", code="SMS_SEND_FAILED")

        try:
            message = self.client.messages.create(body=body, from_=self.from_number, to=to_number)
        except (TwilioException, requests.exceptions.RequestException) as e:
            logger.error("Twilio send failed", error=str(e))
            return Result.failure(f"Failed to send SMS: {e}", code="SMS_SEND_FAILED")

        logger.info("SMS sent", sid=message.sid, status=message.status)
        return Result.success({'sid': message.sid, 'status': message.status})
