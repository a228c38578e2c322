from marketplace.services.gateways.base import (
    CustomerInfo,
    GatewayError,
    GatewayInitResult,
    NoRedirect,
    PaymentGateway,
    PaymentReference,
    RedirectForm,
    RedirectUrl,
    VerificationResult,
)
from marketplace.services.gateways.registry import GatewayRegistry, build_gateway_registry

__all__ = [
    "CustomerInfo",
    "GatewayError",
    "GatewayInitResult",
    "NoRedirect",
    "PaymentGateway",
    "PaymentReference",
    "RedirectForm",
    "RedirectUrl",
    "VerificationResult",
    "GatewayRegistry",
    "build_gateway_registry",
]
