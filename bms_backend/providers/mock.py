import logging
import time
from datetime import datetime

from .base import PaymentInitiationResult, PaymentProvider, PaymentVerificationResult

logger = logging.getLogger(__name__)


class MockProvider(PaymentProvider):
    """Providers without a live integration: instructions are issued and every reference verifies."""

    def __init__(self, name, display_name, prefix, instructions):
        self.name = name
        self.display_name = display_name
        self.prefix = prefix
        self.instructions = instructions

    def get_provider_name(self):
        return self.display_name

    def initiate_payment(self, intent):
        self.validate_intent(intent)
        reference = f"{self.prefix}-{intent.id}-{int(time.time() * 1000)}"
        logger.info("[%s] initiating mock payment intent=%s ref=%s", self.display_name, intent.id, reference)
        return PaymentInitiationResult(
            reference_number=reference,
            payment_instructions=(
                f"{self.display_name} Payment:\n\n{self.instructions}\n\n"
                f"Reference: {reference}\nAmount: {intent.currency} {float(intent.amount):,.2f}"
            ),
            metadata={"mock": True, "provider": self.name, "intent_id": intent.id, "reference": reference},
        )

    def verify_payment(self, reference, metadata=None):
        metadata = metadata or {}
        return PaymentVerificationResult(
            success=True,
            reference_number=reference,
            amount=metadata.get("amount"),
            transaction_id=metadata.get("transaction_id") or reference,
            metadata={"mock": True, "provider": self.name, "verified_at": datetime.utcnow().isoformat()},
        )


def telebirr():
    return MockProvider(
        "telebirr", "Telebirr", "TELEBIRR",
        "Open the Telebirr app, choose Pay with Telebirr and enter the reference below.",
    )


def cbe_birr():
    return MockProvider(
        "cbe_birr", "CBE Birr", "CBEBIRR",
        "Dial *847# or open the CBE Birr app and pay to the merchant using the reference below.",
    )


def hellocash():
    return MockProvider(
        "hellocash", "HelloCash", "HELLOCASH",
        "Dial *912# and complete the payment using the reference below.",
    )


def bank_transfer():
    return MockProvider(
        "bank_transfer", "Bank Transfer", "BANK",
        "Transfer the amount to the building's bank account and quote the reference below.",
    )
