# src/payment/processor.py
import logging
from typing import Dict, Optional
from urllib.parse import urlencode

import requests

from config import settings
from errors import ProcessorUnavailable
from subscription.plans import Plan

logger = logging.getLogger(__name__)


class PaymentProcessorClient:
    """Creates hosted checkout sessions at the payment processor.

    With PAYMENT_API_URL set, the processor is asked for a checkout URL over
    HTTP. Without it, the URL is built locally from PAYMENT_CHECKOUT_URL.
    """

    def __init__(
            self,
            api_url: Optional[str] = None,
            api_key: Optional[str] = None,
            timeout: Optional[float] = None,
            checkout_url: Optional[str] = None,
            public_base_url: Optional[str] = None
    ):
        self.api_url = (settings.PAYMENT_API_URL if api_url is None else api_url).rstrip("/")
        self.api_key = settings.PAYMENT_API_KEY if api_key is None else api_key
        self.timeout = timeout or settings.PAYMENT_API_TIMEOUT
        self.checkout_url = checkout_url or settings.PAYMENT_CHECKOUT_URL
        self.public_base_url = (public_base_url or settings.PUBLIC_BASE_URL).rstrip("/")

    def build_params(self, token: str, plan: Plan, user_id: str, customer_email: Optional[str] = None) -> Dict[str, str]:
        params = {
            "token": token,
            "amount": f"{plan.price / 100:.2f}",
            "currency": plan.currency.upper(),
            "description": f"{plan.name} Subscription",
            "notify_url": f"{self.public_base_url}/webhooks/payments",
            "return_url": f"{self.public_base_url}/payment/success?token={token}",
            "cancel_url": f"{self.public_base_url}/payment/cancel",
            "custom_param1": user_id,
            "custom_param2": plan.id,
        }
        if customer_email:
            params["customer_email"] = customer_email
        return params

    def create_checkout(self, token: str, plan: Plan, user_id: str, customer_email: Optional[str] = None) -> str:
        """Return the URL the customer is sent to for paying."""
        params = self.build_params(token, plan, user_id, customer_email)
        if not self.api_url:
            return f"{self.checkout_url}?{urlencode(params)}"

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            response = requests.post(f"{self.api_url}/checkout", json=params, headers=headers, timeout=self.timeout)
            logger.info(f"Processor checkout call for {token}: status {response.status_code}")
            response.raise_for_status()
            checkout_url = response.json().get("checkout_url")
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Processor checkout call failed for {token}: {str(e)}")
            raise ProcessorUnavailable()
        if not checkout_url:
            logger.error(f"Processor returned no checkout_url for {token}")
            raise ProcessorUnavailable()
        return checkout_url


payment_processor = PaymentProcessorClient()
