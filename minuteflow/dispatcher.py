"""
Webhook dispatcher for approved automations.

Posts the automation payload to a workflow webhook (for example an n8n
trigger) and returns the execution id it reports. Retrying is the
caller's concern; this client makes exactly one request per call and
classifies failures by error code.
"""

from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import httpx

from minuteflow.models.automation import AutomationEvent, DispatchReceipt
from minuteflow.utils.config import get_settings
from minuteflow.utils.exceptions import ConfigurationError, DispatchError
from minuteflow.utils.logger import get_logger

logger = get_logger("dispatch")


class Dispatcher(Protocol):
    """Outbound automation executor."""

    def dispatch(
        self, event: AutomationEvent, parameters: dict[str, Any]
    ) -> DispatchReceipt: ...


class WebhookDispatcher:
    """
    Dispatches automations to a webhook over HTTP.

    Handles payload construction, response parsing and mapping of
    transport and HTTP failures to retryable or fatal error codes.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            webhook_url: Webhook URL. Defaults to DISPATCH_WEBHOOK_URL.
            timeout: Per-request timeout in seconds. Defaults to config value.
            client: Preconfigured httpx client (mainly for tests).
        """
        settings = get_settings()
        self.webhook_url = webhook_url or settings.dispatch.webhook_url
        self.timeout = timeout if timeout is not None else settings.dispatch.timeout

        if not self.webhook_url:
            logger.warning("Dispatch webhook URL not configured")

        self._client = client or httpx.Client(
            timeout=self.timeout,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "WebhookDispatcher":
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()

    @staticmethod
    def build_payload(event: AutomationEvent, parameters: dict[str, Any]) -> dict[str, Any]:
        """Build the JSON body sent to the webhook."""
        return {
            "automationId": event.id,
            "meetingId": event.meeting_id,
            "intent": event.intent.value,
            "parameters": parameters,
            "trigger": {
                "text": event.trigger_text,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        }

    def dispatch(self, event: AutomationEvent, parameters: dict[str, Any]) -> DispatchReceipt:
        """
        Send one approved automation to the webhook.

        Args:
            event: The approved event
            parameters: Effective parameters (edited if present)

        Returns:
            Receipt with the external execution id, if the webhook reported one

        Raises:
            ConfigurationError: If no webhook URL is configured
            DispatchError: On transport failures or non-2xx responses
        """
        if not self.webhook_url:
            raise ConfigurationError(
                "Dispatch webhook URL is not configured",
                missing_keys=["DISPATCH_WEBHOOK_URL"],
            )

        payload = self.build_payload(event, parameters)
        logger.info("Dispatching %s automation %s", event.intent.value, event.id)

        try:
            response = self._client.request("POST", self.webhook_url, json=payload)
        except httpx.TimeoutException as e:
            logger.error("Dispatch timeout for automation %s", event.id)
            raise DispatchError(
                "Webhook request timed out",
                endpoint=self.webhook_url,
                code="ETIMEDOUT",
                cause=e,
            )
        except httpx.ConnectError as e:
            logger.error("Dispatch connection refused for automation %s: %s", event.id, e)
            raise DispatchError(
                "Webhook connection refused",
                endpoint=self.webhook_url,
                code="ECONNREFUSED",
                cause=e,
            )
        except httpx.TransportError as e:
            logger.error("Dispatch network error for automation %s: %s", event.id, e)
            raise DispatchError(
                "Webhook connection failed",
                endpoint=self.webhook_url,
                code="ECONNRESET",
                cause=e,
            )

        if response.status_code >= 400:
            error_body = response.text
            logger.error("Webhook error %d: %s", response.status_code, error_body[:200])
            raise DispatchError(
                f"Webhook returned status {response.status_code}",
                status_code=response.status_code,
                response_body=error_body,
                endpoint=self.webhook_url,
            )

        body = self._parse_body(response)
        external_id = body.get("id") or body.get("executionId")
        logger.info(
            "Automation %s dispatched (external_id=%s)", event.id, external_id
        )
        return DispatchReceipt(
            external_id=str(external_id) if external_id is not None else None,
            status_code=response.status_code,
            body=body,
        )

    @staticmethod
    def _parse_body(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
