"""
Taxonomie des erreurs du checkout et du webhook Stripe.

Chaque exception porte son code HTTP et un message lisible par l'acheteur;
le rendu JSON ({"error": ...}) est centralisé dans app_setup.exceptions.
"""
from typing import Optional


class CheckoutError(Exception):
    status_code = 500
    default_message = "Unexpected checkout error."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(CheckoutError):
    status_code = 401
    default_message = "Authentication required."


class EmptyCart(CheckoutError):
    status_code = 400
    default_message = "Cart is empty."


class UnsupportedCurrency(CheckoutError):
    status_code = 400
    default_message = "Unsupported currency for checkout."


class InvalidCart(CheckoutError):
    status_code = 400
    default_message = "Cart is invalid or stale."


class InvalidCartLine(InvalidCart):
    default_message = "Cart item is invalid."


class MixedCurrencyCart(InvalidCart):
    default_message = "Cart contains items with different currencies."


class EmptySellerSet(InvalidCart):
    default_message = "Unable to create order without seller data."


class PersistenceError(CheckoutError):
    status_code = 500
    default_message = "Unable to persist order data."


class PaymentSessionError(CheckoutError):
    status_code = 502
    default_message = "Unable to create checkout session."


# --- Webhook ---

class WebhookError(CheckoutError):
    status_code = 400


class MissingSignature(WebhookError):
    default_message = "Missing signature"


class InvalidSignature(WebhookError):
    default_message = "Invalid signature"


class InvalidEventPayload(WebhookError):
    default_message = "Invalid event payload"


class ReconciliationError(WebhookError):
    status_code = 500
    default_message = "Reconciliation failed"


class ConfigurationError(CheckoutError):
    status_code = 500
    default_message = "Service is not configured."


class OrderGroupNotFound(CheckoutError):
    status_code = 404
    default_message = "Order group not found."
