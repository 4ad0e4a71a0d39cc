import asyncio

import pytest
from fastapi import HTTPException

from salon_recovery.security import api_key_matches, verify_api_key


def test_api_key_matches():
    assert api_key_matches("s3cret", "s3cret")
    assert not api_key_matches("s3cre", "s3cret")
    assert not api_key_matches("", "s3cret")
    assert not api_key_matches(None, "s3cret")


def test_verify_api_key_open_without_configured_key(_safe_test_config):
    assert asyncio.run(verify_api_key(None)) == "development"


def test_verify_api_key_rejects_wrong_key(_safe_test_config, monkeypatch):
    monkeypatch.setattr(_safe_test_config, "API_KEY", "s3cret")

    assert asyncio.run(verify_api_key("s3cret")) == "s3cret"
    with pytest.raises(HTTPException) as exc_info:
        asyncio.run(verify_api_key("guess"))
    assert exc_info.value.status_code == 403
