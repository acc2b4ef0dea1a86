"""
Botpress API Client

Handles direct API communication with the Botpress chat platform:
- end-user and conversation creation
- participants and conversation state
- bot messages
- relaying inbound SMS to the bot's webhook

Every call is made once; there are no retries. Failures raise
BotpressAPIError and the caller decides whether they are fatal.
"""

import time
from typing import Dict, Any, Optional
import requests
from logging_config import get_logger, PerformanceLogger

logger = get_logger(__name__)
performance_logger = PerformanceLogger()


class BotpressAPIError(Exception):
    """Raised when a Botpress request fails or returns an unexpected payload"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BotpressClient:
    """Client for interacting with the Botpress chat API"""

    def __init__(self,
                 token: Optional[str],
                 bot_id: Optional[str],
                 integration_id: Optional[str] = None,
                 base_url: str = "https://api.botpress.cloud",
                 webhook_url: Optional[str] = None,
                 timeout: float = 10):
        """
        Initialize Botpress API client.

        Args:
            token: Personal access or bot token
            bot_id: Bot the conversations belong to
            integration_id: Integration that owns the conversations (optional)
            base_url: Base URL for the Botpress API
            webhook_url: Incoming-message webhook of the bot's integration
            timeout: Default request timeout in seconds
        """
        self.token = token
        self.bot_id = bot_id
        self.integration_id = integration_id
        self.base_url = base_url.rstrip('/')
        self.webhook_url = webhook_url
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.token and self.bot_id)

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "x-bot-id": self.bot_id,
            "Content-Type": "application/json"
        }
        if self.integration_id:
            headers["x-integration-id"] = self.integration_id
        return headers

    def _make_request(self, method: str, endpoint: str, json_data: Optional[Dict] = None,
                      timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        Make one HTTP request to the Botpress API.

        Raises:
            BotpressAPIError: On missing configuration, transport errors or non-2xx responses
        """
        if not self.is_configured:
            raise BotpressAPIError("BOTPRESS_TOKEN or BOTPRESS_BOT_ID not configured")

        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        started = time.monotonic()
        try:
            response = requests.request(
                method=method,
                url=url,
                headers=self._headers(),
                json=json_data,
                timeout=timeout or self.timeout
            )
        except requests.exceptions.Timeout as e:
            logger.error("Botpress request timed out", endpoint=endpoint, error=str(e))
            raise BotpressAPIError(f"Request to {endpoint} timed out") from e
        except requests.exceptions.RequestException as e:
            logger.error("Botpress request failed", endpoint=endpoint, error=str(e))
            raise BotpressAPIError(f"Request to {endpoint} failed: {e}") from e

        performance_logger.log_api_call(
            "botpress", endpoint, round((time.monotonic() - started) * 1000, 1), response.status_code
        )

        if not response.ok:
            logger.error("Botpress API error", endpoint=endpoint,
                         status_code=response.status_code, body=response.text[:500])
            raise BotpressAPIError(
                f"Botpress returned {response.status_code} for {endpoint}",
                status_code=response.status_code
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise BotpressAPIError(f"Invalid JSON from {endpoint}") from e

    @staticmethod
    def _extract_id(payload: Dict[str, Any], key: str, endpoint: str) -> str:
        entity = payload.get(key) or {}
        entity_id = entity.get('id')
        if not entity_id:
            raise BotpressAPIError(f"Response from {endpoint} did not include a {key} id")
        return str(entity_id)

    def get_or_create_user(self, tags: Optional[Dict[str, str]] = None,
                           timeout: Optional[float] = None) -> str:
        """Create (or fetch) the end user and return its id."""
        endpoint = "/v1/chat/users/get-or-create"
        payload = self._make_request("POST", endpoint, {"tags": tags or {}}, timeout)
        return self._extract_id(payload, 'user', endpoint)

    def create_conversation(self, channel: str, tags: Dict[str, str],
                            timeout: Optional[float] = None) -> str:
        """Create a conversation and return its id."""
        endpoint = "/v1/chat/conversations"
        payload = self._make_request("POST", endpoint, {"channel": channel, "tags": tags}, timeout)
        return self._extract_id(payload, 'conversation', endpoint)

    def add_participant(self, conversation_id: str, user_id: str,
                        timeout: Optional[float] = None) -> None:
        self._make_request(
            "POST", f"/v1/chat/conversations/{conversation_id}/participants",
            {"userId": user_id}, timeout
        )

    def set_state(self, state_type: str, entity_id: str, name: str, payload: Dict[str, Any],
                  timeout: Optional[float] = None) -> None:
        self._make_request(
            "POST", f"/v1/chat/states/{state_type}/{entity_id}/{name}",
            {"payload": payload}, timeout
        )

    def create_message(self, conversation_id: str, user_id: str, text: str,
                       timeout: Optional[float] = None) -> Optional[str]:
        """Post a text message into a conversation; returns the message id when given."""
        payload = self._make_request("POST", "/v1/chat/messages", {
            "conversationId": conversation_id,
            "userId": user_id,
            "type": "text",
            "payload": {"text": text},
            "tags": {}
        }, timeout)
        message = payload.get('message') or {}
        return message.get('id')

    def relay_inbound_message(self, user_id: str, conversation_id: str, text: str,
                              message_id: Optional[str] = None) -> None:
        """
        Forward an inbound SMS to the bot's webhook integration.

        Raises:
            BotpressAPIError: When the webhook URL is missing or the POST fails
        """
        if not self.webhook_url:
            raise BotpressAPIError("BOTPRESS_WEBHOOK_URL not configured")

        body = {"userId": user_id, "conversationId": conversation_id, "text": text}
        if message_id:
            body["messageId"] = message_id

        started = time.monotonic()
        try:
            response = requests.post(self.webhook_url, json=body, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error("Botpress relay failed", error=str(e))
            raise BotpressAPIError(f"Relay to Botpress failed: {e}") from e

        performance_logger.log_api_call(
            "botpress", "webhook", round((time.monotonic() - started) * 1000, 1), response.status_code
        )
        if not response.ok:
            raise BotpressAPIError(
                f"Botpress webhook returned {response.status_code}",
                status_code=response.status_code
            )
