"""LLM gateway: prompts, forced structured output, and shape repair."""

from discovery.gateway.fake import GatewayFake
from discovery.gateway.service import AnthropicGateway, DiscoveryGateway, DocumentInput

__all__ = ["AnthropicGateway", "DiscoveryGateway", "DocumentInput", "GatewayFake"]
