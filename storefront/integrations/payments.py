"""
Ozow Payment Gateway Client

Redirect-based instant EFT. Checkout posts a transaction to the gateway and
sends the shopper to the returned URL; the gateway later calls our notify
URL with the outcome.

Request and notification integrity uses Ozow's hash check: the field values
are concatenated in order, the private key is appended, the whole string is
lower-cased and SHA-512 hashed.
"""

import hashlib
import hmac
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

import httpx
import structlog

from storefront.config import get_settings
from storefront.config.settings import PaymentSettings
from storefront.services.exceptions import PaymentGatewayError

logger = structlog.get_logger(__name__)

# Fields of a notification that take part in its hash, in hashing order
NOTIFICATION_HASH_FIELDS = (
    "SiteCode",
    "TransactionId",
    "TransactionReference",
    "Amount",
    "Status",
    "Optional1",
    "Optional2",
    "Optional3",
    "Optional4",
    "Optional5",
    "CurrencyCode",
    "IsTest",
    "StatusMessage",
)


@dataclass(frozen=True)
class PaymentRedirect:
    """Where to send the shopper, and the gateway's id for the payment"""
    url: str
    transaction_id: Optional[str] = None


class OzowGateway:
    """
    Async client for the Ozow API.

    Example:
        gateway = OzowGateway()
        redirect = await gateway.initiate_payment(
            amount=Decimal("129.60"),
            reference="MDH-482913K7Q",
            customer_email="jane@example.com",
        )
    """

    def __init__(
        self,
        settings: Optional[PaymentSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings().payments
        self._transport = transport

    def _hash(self, values: Iterable[Any]) -> str:
        raw = "".join("" if v is None else str(v) for v in values)
        raw += self.settings.private_key.get_secret_value()
        return hashlib.sha512(raw.lower().encode("utf-8")).hexdigest()

    def build_transaction(
        self,
        amount: Decimal,
        reference: str,
        customer_email: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Transaction payload including its hash check."""
        s = self.settings
        transaction = {
            "siteCode": s.site_code,
            "countryCode": s.country_code,
            "currencyCode": s.currency_code,
            "amount": f"{amount:.2f}",
            "transactionReference": reference,
            "bankReference": reference,
            "customer": customer_email or "",
            "cancelUrl": s.cancel_url,
            "errorUrl": s.cancel_url,
            "successUrl": s.success_url,
            "notifyUrl": s.notify_url,
            "isTest": str(s.is_test).lower(),
        }
        transaction["hashCheck"] = self._hash(transaction.values())
        return transaction

    async def initiate_payment(
        self,
        amount: Decimal,
        reference: str,
        customer_email: Optional[str] = None,
    ) -> PaymentRedirect:
        """
        Start a payment and return the redirect for the shopper.

        Raises:
            PaymentGatewayError: Network failure, non-2xx answer, or no URL returned
        """
        if amount <= 0:
            raise PaymentGatewayError("Payment amount must be greater than zero")

        payload = self.build_transaction(amount, reference, customer_email)
        logger.info("Initiating payment", reference=reference, amount=payload["amount"])

        try:
            async with httpx.AsyncClient(
                base_url=self.settings.base_url,
                headers={
                    "ApiKey": self.settings.api_key.get_secret_value(),
                    "Accept": "application/json",
                },
                timeout=self.settings.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post("/postpaymentrequest", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Payment gateway rejected transaction",
                reference=reference,
                status_code=e.response.status_code,
            )
            raise PaymentGatewayError("Payment gateway rejected the transaction") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Payment gateway request failed", reference=reference, error=str(e))
            raise PaymentGatewayError("Payment gateway unavailable") from e

        url = data.get("url")
        if not url or data.get("errorMessage"):
            logger.error("Payment gateway returned no redirect", reference=reference, error=data.get("errorMessage"))
            raise PaymentGatewayError(data.get("errorMessage") or "Payment gateway returned no redirect URL")

        return PaymentRedirect(url=url, transaction_id=data.get("paymentRequestId"))

    def sign_notification(self, payload: Dict[str, Any]) -> str:
        return self._hash(payload.get(field) for field in NOTIFICATION_HASH_FIELDS)

    def verify_notification(self, payload: Dict[str, Any]) -> bool:
        """Check the notification's Hash field against our own hash of it."""
        received = str(payload.get("Hash") or "").lower()
        if not received:
            return False
        return hmac.compare_digest(received, self.sign_notification(payload))
