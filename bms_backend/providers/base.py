import hashlib
import hmac
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..errors import ValidationError


@dataclass
class PaymentInitiationResult:
    redirect_url: Optional[str] = None
    payment_instructions: Optional[str] = None
    reference_number: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentVerificationResult:
    success: bool
    reference_number: str
    amount: Optional[float] = None
    transaction_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


class PaymentProvider:
    """Common interface of the mobile-money / gateway integrations."""

    name = "base"

    def get_provider_name(self) -> str:
        raise NotImplementedError

    def is_enabled(self) -> bool:
        return True

    def initiate_payment(self, intent) -> PaymentInitiationResult:
        raise NotImplementedError

    def verify_payment(self, reference: str, metadata: Optional[dict] = None) -> PaymentVerificationResult:
        raise NotImplementedError

    def verify_webhook_signature(self, payload, signature, secret=None) -> bool:
        """HMAC-SHA256 hex digest of the raw payload, compared in constant time."""
        if not secret:
            return True
        if not signature:
            return False
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        expected = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))

    def validate_intent(self, intent):
        if intent.amount is None or intent.amount <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        if not intent.tenant_id:
            raise ValidationError("Payment intent has no tenant")
