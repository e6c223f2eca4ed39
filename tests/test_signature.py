"""Unit tests for checkout signature verification."""

import importlib

import pytest

import config
from conftest import TEST_SECRET, sign
from pipeline.agents import payment_gateway
from pipeline.agents.payment_gateway import SignatureVerifier

ORDER_ID = "order_Nk1yX3bq9sPZ2a"
PAYMENT_ID = "pay_Nk1z0cVhT8kL4m"


def _mutate(value: str, index: int) -> str:
    replacement = "0" if value[index] != "0" else "1"
    return value[:index] + replacement + value[index + 1:]


@pytest.fixture
def verifier():
    return SignatureVerifier(TEST_SECRET)


def test_valid_signature_passes(verifier):
    assert verifier.verify(ORDER_ID, PAYMENT_ID, sign(ORDER_ID, PAYMENT_ID))


def test_expected_signature_is_lowercase_hex(verifier):
    signature = verifier.expected_signature(ORDER_ID, PAYMENT_ID)
    assert len(signature) == 64
    assert signature == signature.lower()
    int(signature, 16)


def test_any_signature_mutation_fails(verifier):
    signature = sign(ORDER_ID, PAYMENT_ID)
    for index in range(len(signature)):
        assert not verifier.verify(ORDER_ID, PAYMENT_ID, _mutate(signature, index))


def test_any_order_id_mutation_fails(verifier):
    signature = sign(ORDER_ID, PAYMENT_ID)
    for index in range(len(ORDER_ID)):
        assert not verifier.verify(_mutate(ORDER_ID, index), PAYMENT_ID, signature)


def test_any_payment_id_mutation_fails(verifier):
    signature = sign(ORDER_ID, PAYMENT_ID)
    for index in range(len(PAYMENT_ID)):
        assert not verifier.verify(ORDER_ID, _mutate(PAYMENT_ID, index), signature)


def test_swapped_ids_fail(verifier):
    assert not verifier.verify(PAYMENT_ID, ORDER_ID, sign(ORDER_ID, PAYMENT_ID))


def test_wrong_secret_fails():
    verifier = SignatureVerifier("another_secret")
    assert not verifier.verify(ORDER_ID, PAYMENT_ID, sign(ORDER_ID, PAYMENT_ID))


@pytest.mark.parametrize(
    "order_id,payment_id,signature",
    [
        (None, PAYMENT_ID, "x"),
        (ORDER_ID, None, "x"),
        (ORDER_ID, PAYMENT_ID, None),
        ("", PAYMENT_ID, "x"),
        (ORDER_ID, PAYMENT_ID, ""),
    ],
)
def test_missing_parts_fail(verifier, order_id, payment_id, signature):
    assert not verifier.verify(order_id, payment_id, signature)


def test_uppercase_signature_is_rejected(verifier):
    assert not verifier.verify(ORDER_ID, PAYMENT_ID, sign(ORDER_ID, PAYMENT_ID).upper())


def test_non_ascii_signature_is_rejected(verifier):
    signature = sign(ORDER_ID, PAYMENT_ID)
    assert not verifier.verify(ORDER_ID, PAYMENT_ID, "é" + signature[1:])
    assert not verifier.verify(ORDER_ID, PAYMENT_ID, "é")


@pytest.mark.parametrize("secret", ["", None])
def test_unset_secret_rejects_everything(monkeypatch, secret):
    monkeypatch.setattr(payment_gateway.settings, "RAZORPAY_SECRET", "")
    verifier = SignatureVerifier(secret)

    placeholder = sign(ORDER_ID, PAYMENT_ID, secret="your_razorpay_key_secret")
    assert not verifier.verify(ORDER_ID, PAYMENT_ID, placeholder)
    assert not verifier.verify(ORDER_ID, PAYMENT_ID, sign(ORDER_ID, PAYMENT_ID, secret=""))


def test_secret_has_no_default(monkeypatch):
    monkeypatch.delenv("RAZORPAY_SECRET", raising=False)
    monkeypatch.delenv("RAZORPAY_KEY_SECRET", raising=False)
    try:
        reloaded = importlib.reload(config)
        assert reloaded.settings.RAZORPAY_KEY_SECRET == ""
        assert reloaded.settings.RAZORPAY_SECRET == ""
    finally:
        monkeypatch.undo()
        importlib.reload(config)
