"""Application-scoped collaborators built once in create_app()."""

import pytest
from starlette.requests import Request

from discovery.api.dependencies import build_gateway, get_gateway
from discovery.core.config import get_settings
from discovery.gateway.fake import GatewayFake
from discovery.gateway.service import AnthropicGateway
from discovery.main import create_app

pytestmark = pytest.mark.unit


def _request_for(app) -> Request:
    return Request({"type": "http", "app": app, "headers": []})


def test_every_request_shares_the_startup_gateway(monkeypatch):
    monkeypatch.setattr(get_settings(), "anthropic_api_key", "")
    app = create_app()

    first = get_gateway(_request_for(app))
    second = get_gateway(_request_for(app))

    assert isinstance(app.state.gateway, GatewayFake)
    assert first is second is app.state.gateway


async def test_api_key_selects_the_anthropic_gateway(monkeypatch):
    monkeypatch.setattr(get_settings(), "anthropic_api_key", "sk-test")

    gateway = build_gateway()

    assert isinstance(gateway, AnthropicGateway)
    await gateway.aclose()


async def test_fake_gateway_close_is_recorded():
    gateway = GatewayFake()

    await gateway.aclose()

    assert gateway.closed is True
