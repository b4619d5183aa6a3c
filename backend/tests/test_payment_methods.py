"""Payment method normalization."""

import pytest

from barbershop.services.payment_methods import resolve_payment_method


@pytest.mark.parametrize(
    "value,expected",
    [
        ("cash", "cash"),
        ("credit_card", "credit_card"),
        ("debit_card", "debit_card"),
        ("pix", "pix"),
        ("Dinheiro", "cash"),
        ("Cartão de Crédito", "credit_card"),
        ("cartao de credito", "credit_card"),
        ("Credit Card", "credit_card"),
        ("Cartão de Débito", "debit_card"),
        ("debito", "debit_card"),
        ("PIX", "pix"),
        ("Pix instantâneo", "pix"),
    ],
)
def test_resolves_known_inputs(value, expected):
    assert resolve_payment_method(value) == expected


def test_keyword_order_prefers_cash():
    # "cash" is checked before "credit"
    assert resolve_payment_method("cash or credit") == "cash"


@pytest.mark.parametrize("value", ["xyz", "", None, 42, "boleto"])
def test_unknown_input_falls_back_to_cash(value):
    assert resolve_payment_method(value) == "cash"


def test_fallback_is_logged(app, caplog):
    with caplog.at_level("INFO"):
        resolve_payment_method("voucher")
    assert any("defaulting to cash" in record.getMessage() for record in caplog.records)
