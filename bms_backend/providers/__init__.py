from ..errors import ValidationError
from . import mock
from .base import PaymentInitiationResult, PaymentProvider, PaymentVerificationResult
from .chapa import ChapaProvider

PROVIDERS = ("telebirr", "cbe_birr", "chapa", "hellocash", "bank_transfer")

_MOCK_FACTORIES = {
    "telebirr": mock.telebirr,
    "cbe_birr": mock.cbe_birr,
    "hellocash": mock.hellocash,
    "bank_transfer": mock.bank_transfer,
}


def get_payment_provider(name) -> PaymentProvider:
    if name == "chapa":
        return ChapaProvider()
    factory = _MOCK_FACTORIES.get(name)
    if factory is None:
        raise ValidationError(f"Invalid payment provider: {name}")
    return factory()


__all__ = [
    "PROVIDERS",
    "PaymentInitiationResult",
    "PaymentProvider",
    "PaymentVerificationResult",
    "get_payment_provider",
]
