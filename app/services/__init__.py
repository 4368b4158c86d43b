"""Services package."""

from app.services.paystack_client import PaystackClient
from app.services.paystack_signature import WebhookVerifier, verify_paystack_signature
from app.services.reconciliation import ReconciliationService, ReconcileOutcome, decide_reconciliation
from app.services.payment_service import PaymentService
from app.services.lease_service import LeaseService
from app.services.webhook_guard import WebhookDeliveryGuard

__all__ = [
    "PaystackClient",
    "WebhookVerifier",
    "verify_paystack_signature",
    "ReconciliationService",
    "ReconcileOutcome",
    "decide_reconciliation",
    "PaymentService",
    "LeaseService",
    "WebhookDeliveryGuard",
]
