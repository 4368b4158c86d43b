"""
Paystack Client - transaction initialize/verify against the Paystack REST API.
Docs: https://paystack.com/docs/api/transaction/
"""

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.config import PaystackConfig
from app.fsm.states import PaystackTransactionStatus

logger = logging.getLogger(__name__)

INITIALIZE_FALLBACK_MESSAGE = "Failed to initialize Paystack transaction"
VERIFY_FALLBACK_MESSAGE = "Failed to verify Paystack transaction"


class PaystackError(Exception):
    """Base exception for Paystack integration errors."""


class PaystackConfigError(PaystackError):
    """Paystack is not configured (missing secret key)."""


class PaystackAPIError(PaystackError):
    """Paystack answered with a non-success response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class PaystackUnavailableError(PaystackAPIError):
    """Paystack could not be reached (network failure or timeout)."""


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to kobo/cents (Paystack's unit)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


def _dict_or_empty(value: Any) -> Dict[str, Any]:
    # Paystack returns metadata as "" when none was sent
    return value if isinstance(value, dict) else {}


class InitializeRequest(BaseModel):
    """Body for POST /transaction/initialize."""

    email: str
    amount: int = Field(gt=0, description="Amount in the lowest currency unit")
    currency: Optional[str] = None
    reference: Optional[str] = None
    callback_url: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    channels: Optional[List[str]] = None


class InitializeResult(BaseModel):
    """data block of the initialize response."""

    model_config = ConfigDict(extra="ignore")

    reference: str
    authorization_url: str
    access_code: Optional[str] = None


class VerifyResult(BaseModel):
    """data block of the verify response."""

    model_config = ConfigDict(extra="ignore")

    status: PaystackTransactionStatus
    reference: str
    amount: int
    currency: Optional[str] = None
    paid_at: Optional[datetime] = None
    channel: Optional[str] = None
    gateway_response: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> PaystackTransactionStatus:
        return PaystackTransactionStatus.parse(str(value) if value is not None else "")

    @field_validator("metadata", mode="before")
    @classmethod
    def _parse_metadata(cls, value: Any) -> Dict[str, Any]:
        return _dict_or_empty(value)

    @property
    def is_success(self) -> bool:
        return self.status is PaystackTransactionStatus.SUCCESS


class PaystackEventData(BaseModel):
    """data block of a webhook event."""

    model_config = ConfigDict(extra="ignore")

    # Non-charge events (subscription.*, customeridentification.*) carry no reference
    reference: Optional[str] = None
    status: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    message: Optional[str] = None
    gateway_response: Optional[str] = None
    paid_at: Optional[datetime] = None
    channel: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def _parse_metadata(cls, value: Any) -> Dict[str, Any]:
        return _dict_or_empty(value)


class PaystackWebhookEvent(BaseModel):
    """Webhook envelope: {"event": "...", "data": {...}}."""

    model_config = ConfigDict(extra="ignore")

    event: str
    data: PaystackEventData


class PaystackClient:
    """
    Async Paystack transaction client.

    initialize_transaction is never retried: each call may create a new
    transaction attempt. verify_transaction is read-only and is retried on
    transport failures.
    """

    def __init__(
        self,
        config: PaystackConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_backoff_seconds: float = 0.5,
    ):
        self.config = config
        self.retry_backoff_seconds = retry_backoff_seconds
        self._client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> "PaystackClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    def _auth_headers(self) -> Dict[str, str]:
        if not self.config.secret_key:
            raise PaystackConfigError("PAYSTACK_SECRET_KEY is not configured")
        return {"Authorization": f"Bearer {self.config.secret_key}"}

    @staticmethod
    def _parse_response(response: httpx.Response, fallback_message: str) -> Dict[str, Any]:
        """Return the data block, raising PaystackAPIError on any failure."""
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not response.is_success:
            message = body.get("message") or fallback_message
            raise PaystackAPIError(message, status_code=response.status_code)

        data = body.get("data")
        if body.get("status") is False or not isinstance(data, dict):
            message = body.get("message") or fallback_message
            raise PaystackAPIError(message, status_code=response.status_code)

        return data

    async def initialize_transaction(self, request: InitializeRequest) -> InitializeResult:
        """
        Initialize a transaction and return its reference and checkout URL.

        Raises PaystackConfigError when no secret is configured and
        PaystackAPIError when Paystack rejects the request.
        """
        headers = self._auth_headers()
        url = f"{self.config.base_url}/transaction/initialize"

        try:
            response = await self._get_client().post(
                url,
                json=request.model_dump(exclude_none=True),
                headers=headers,
                timeout=self.config.timeout_seconds,
            )
        except httpx.TransportError as e:
            logger.error(f"Paystack initialize transport error: {type(e).__name__}")
            raise PaystackUnavailableError(INITIALIZE_FALLBACK_MESSAGE) from e

        data = self._parse_response(response, INITIALIZE_FALLBACK_MESSAGE)
        result = InitializeResult.model_validate(data)
        logger.info(
            f"Paystack transaction initialized: {result.reference}",
            extra={"reference": result.reference},
        )
        return result

    async def verify_transaction(self, reference: str) -> VerifyResult:
        """
        Fetch the settled status of a transaction by reference.

        Transport failures are retried with exponential backoff up to
        config.verify_max_attempts. HTTP error responses are not retried.
        """
        headers = self._auth_headers()
        url = f"{self.config.base_url}/transaction/verify/{quote(reference, safe='')}"

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self.config.verify_max_attempts)),
            wait=wait_exponential(multiplier=self.retry_backoff_seconds, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._get_client().get(
                        url,
                        headers=headers,
                        timeout=self.config.timeout_seconds,
                    )
        except httpx.TransportError as e:
            logger.error(
                f"Paystack verify unreachable for {reference}: {type(e).__name__}",
                extra={"reference": reference},
            )
            raise PaystackUnavailableError(VERIFY_FALLBACK_MESSAGE) from e

        data = self._parse_response(response, VERIFY_FALLBACK_MESSAGE)
        result = VerifyResult.model_validate(data)
        logger.info(
            f"Paystack transaction {reference} verified: {result.status.value}",
            extra={"reference": reference},
        )
        return result
