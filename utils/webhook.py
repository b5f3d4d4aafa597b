"""
Outbound webhook for committed approve/reject transitions.
Fire-and-forget: one POST per event, no retries.
"""
import logging

import requests

from utils.wallet_errors import NotificationFailed

logger = logging.getLogger(__name__)


class WebhookNotifier:
    """Transition listener that POSTs the event payload as JSON to `url`."""

    def __init__(self, url, timeout=10, session=None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def __call__(self, event):
        payload = event.to_payload()
        logger.info("[WEBHOOK] Transaction %s status changed to %s", payload['transaction_id'], payload['new_status'])
        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise NotificationFailed(f"Webhook request to {self.url} failed: {e}", cause=e) from e

        # Body is ignored; the endpoint may return no content
        if not 200 <= response.status_code < 300:
            raise NotificationFailed(f"Webhook failed with status: {response.status_code}")
        return True
