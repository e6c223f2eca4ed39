"""Pytest configuration for the ASTA backend test suite."""

import hashlib
import hmac
import os
import sys
import tempfile
from pathlib import Path

import pytest

TEST_SECRET = "test_secret"


def _ensure_test_env() -> None:
    """Seed environment before config.py is imported."""
    os.environ.setdefault("STORE_BACKEND", "memory")
    os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
    os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")
    os.environ.setdefault("RAZORPAY_SECRET", TEST_SECRET)
    os.environ.setdefault("EMAIL_USER", "admin@asta.test")
    os.environ.setdefault("ADMIN_EMAIL", "admin@asta.test")
    os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="asta-test-data-"))
    os.environ.setdefault("ENV", "test")


_ensure_test_env()

ROOT = Path(__file__).resolve().parents[1]
BACKEND = ROOT / "backend"
sys.path.insert(0, str(BACKEND))


def sign(order_id: str, payment_id: str, secret: str = TEST_SECRET) -> str:
    return hmac.new(
        secret.encode("utf-8"),
        f"{order_id}|{payment_id}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def container(data_dir):
    from services.container import build_memory_container

    return build_memory_container(data_dir, secret=TEST_SECRET)


@pytest.fixture
def client(container):
    from fastapi.testclient import TestClient

    from api.server import create_app

    with TestClient(create_app(container)) as test_client:
        yield test_client
