import logging
import time
from datetime import datetime

import requests
from flask import current_app

from ..errors import ValidationError
from ..models import Tenant
from ..extensions import db
from .base import PaymentInitiationResult, PaymentProvider, PaymentVerificationResult

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.chapa.co/v1"
REQUEST_TIMEOUT = 30


class ChapaProvider(PaymentProvider):
    name = "chapa"

    def __init__(self, config=None):
        config = config if config is not None else current_app.config
        self.secret_key = config.get("CHAPA_SECRET_KEY") or None
        self.public_key = config.get("CHAPA_PUBLIC_KEY") or None
        self.webhook_secret = config.get("CHAPA_WEBHOOK_SECRET") or None
        self.base_url = (config.get("CHAPA_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.app_base_url = (config.get("APP_BASE_URL") or "http://localhost:3000").rstrip("/")
        self.test_mode = (
            not self.secret_key
            or "TEST" in self.secret_key
            or bool(config.get("CHAPA_TEST_MODE"))
        )

    def get_provider_name(self):
        return "Chapa"

    def is_enabled(self):
        return bool(self.secret_key) or self.test_mode

    def _headers(self):
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def initiate_payment(self, intent):
        self.validate_intent(intent)
        tx_ref = f"CHAPA-{intent.id}-{int(time.time() * 1000)}"
        logger.info("[Chapa] initiating payment intent=%s amount=%s", intent.id, intent.amount)

        if self.test_mode:
            return PaymentInitiationResult(
                redirect_url=f"{self.app_base_url}/tenant/payments/chapa?tx_ref={tx_ref}",
                reference_number=tx_ref,
                payment_instructions=(
                    f"Chapa Payment (Test Mode):\n\nReference: {tx_ref}\n"
                    f"Amount: {intent.currency} {float(intent.amount):,.2f}\n\n"
                    "In test mode, payment will be simulated."
                ),
                metadata={"mock": True, "provider": "chapa", "intent_id": intent.id, "tx_ref": tx_ref},
            )

        tenant = db.session.get(Tenant, intent.tenant_id)
        if tenant is None:
            raise ValidationError("Failed to initiate Chapa payment: Tenant not found")

        body = {
            "amount": str(intent.amount),
            "currency": intent.currency or "ETB",
            "email": tenant.email or f"tenant-{intent.tenant_id}@example.com",
            "first_name": tenant.first_name or "Tenant",
            "last_name": tenant.last_name or "User",
            "phone_number": tenant.primary_phone,
            "tx_ref": tx_ref,
            "callback_url": f"{self.app_base_url}/api/webhooks/payments/chapa",
            "return_url": f"{self.app_base_url}/org/payments/status?tx_ref={tx_ref}&intent_id={intent.id}",
            "customization": {
                "title": "BMS Invoice Payment",
                "description": f"Payment for invoice {intent.invoice_id or 'N/A'}",
            },
            "meta": {
                "intent_id": intent.id,
                "invoice_id": intent.invoice_id,
                "tenant_id": intent.tenant_id,
                "organization_id": intent.organization_id,
            },
        }
        try:
            resp = requests.post(
                f"{self.base_url}/transaction/initialize",
                headers=self._headers(),
                json=body,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.error("[Chapa] initialize request failed: %s", e)
            raise ValidationError(f"Failed to initiate Chapa payment: {e}")

        data = _json_or_empty(resp)
        if not resp.ok:
            message = data.get("message") or f"Chapa API error: {resp.status_code}"
            raise ValidationError(f"Failed to initiate Chapa payment: {message}")
        checkout_url = (data.get("data") or {}).get("checkout_url")
        if data.get("status") != "success" or not checkout_url:
            message = data.get("message") or "Failed to initialize Chapa payment"
            raise ValidationError(f"Failed to initiate Chapa payment: {message}")

        return PaymentInitiationResult(
            redirect_url=checkout_url,
            reference_number=tx_ref,
            metadata={
                "provider": "chapa",
                "intent_id": intent.id,
                "tx_ref": tx_ref,
                "chapa_transaction_id": (data.get("data") or {}).get("id"),
            },
        )

    def verify_payment(self, reference, metadata=None):
        metadata = metadata or {}
        if self.test_mode:
            return PaymentVerificationResult(
                success=True,
                reference_number=reference,
                amount=metadata.get("amount"),
                metadata={"mock": True, "provider": "chapa", "verified_at": datetime.utcnow().isoformat()},
            )

        try:
            resp = requests.get(
                f"{self.base_url}/transaction/verify/{reference}",
                headers=self._headers(),
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.error("[Chapa] verify request failed: %s", e)
            return PaymentVerificationResult(success=False, reference_number=reference, error=str(e))

        data = _json_or_empty(resp)
        if not resp.ok:
            return PaymentVerificationResult(
                success=False,
                reference_number=reference,
                error=data.get("message") or f"Chapa API error: {resp.status_code}",
            )
        transaction = data.get("data")
        if data.get("status") != "success" or not transaction:
            return PaymentVerificationResult(
                success=False,
                reference_number=reference,
                error=data.get("message") or "Transaction verification failed",
            )

        successful = transaction.get("status") in ("successful", "success")
        return PaymentVerificationResult(
            success=successful,
            reference_number=reference,
            amount=float(transaction.get("amount") or 0),
            transaction_id=transaction.get("id"),
            metadata={
                "provider": "chapa",
                "status": transaction.get("status"),
                "currency": transaction.get("currency"),
                "verified_at": datetime.utcnow().isoformat(),
            },
            error=None if successful else f"Transaction status: {transaction.get('status')}",
        )

    def verify_webhook_signature(self, payload, signature, secret=None):
        secret = secret or self.webhook_secret or self.secret_key
        if not secret:
            logger.warning("[Chapa] no webhook secret configured, skipping signature verification")
            return True
        return super().verify_webhook_signature(payload, signature, secret)


def _json_or_empty(resp):
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
