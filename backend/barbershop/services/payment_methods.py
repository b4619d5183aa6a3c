"""
Payment method normalization.

Clients send whatever the checkout screen shows ("Cartão de Crédito",
"Dinheiro", "PIX", ...). Orders store one of four canonical values.
"""

from __future__ import annotations

from flask import current_app, has_app_context

PAYMENT_CASH = "cash"
PAYMENT_CREDIT_CARD = "credit_card"
PAYMENT_DEBIT_CARD = "debit_card"
PAYMENT_PIX = "pix"

VALID_PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_CREDIT_CARD, PAYMENT_DEBIT_CARD, PAYMENT_PIX)

# Checked in order; first keyword contained in the input wins
PAYMENT_KEYWORDS = (
    (PAYMENT_CASH, ("cash", "dinheiro")),
    (PAYMENT_CREDIT_CARD, ("credit", "crédito", "credito")),
    (PAYMENT_DEBIT_CARD, ("debit", "débito", "debito")),
    (PAYMENT_PIX, ("pix",)),
)


def resolve_payment_method(value) -> str:
    """
    Map arbitrary payment-method input to the canonical set.

    Unrecognized input falls back to cash. This can hide bad client data;
    the fallback is logged so it shows up in the server log.
    """
    if isinstance(value, str) and value in VALID_PAYMENT_METHODS:
        return value

    lowered = str(value).lower()
    for method, keywords in PAYMENT_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return method

    if has_app_context():
        current_app.logger.info("Unrecognized payment method %r, defaulting to cash", value)
    return PAYMENT_CASH
