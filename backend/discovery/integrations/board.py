"""Project-management board integration (read-only, GraphQL over httpx).

Used by the admin to pick a board item and import its text as engagement
context. The API key comes from the admin-set config value first, then the
BOARD_API_KEY environment setting.
"""

from typing import Any

import httpx
import structlog

from discovery.core.config import get_settings
from discovery.core.exceptions import BoardError
from discovery.repositories.cache import ConfigStore

logger = structlog.get_logger(__name__)

BOARD_API_KEY_CONFIG = "board_api_key"
MAX_CONTEXT_UPDATES = 5

_SEARCH_BOARDS = """query {
  boards(limit: 20) {
    id
    name
  }
}"""

_BOARD_ITEMS = """query ($boardId: [ID!]!) {
  boards(ids: $boardId) {
    items_page(limit: 50) {
      items {
        id
        name
      }
    }
  }
}"""

_ITEM_DETAILS = """query ($itemId: [ID!]!) {
  items(ids: $itemId) {
    id
    name
    column_values {
      id
      title
      text
    }
    updates(limit: 10) {
      text_body
      created_at
    }
  }
}"""


async def resolve_board_api_key(config: ConfigStore) -> tuple[str | None, str]:
    """Return (api_key, source) where source is "admin", "env" or "none"."""
    admin_key = await config.get(BOARD_API_KEY_CONFIG)
    if admin_key:
        return admin_key, "admin"
    env_key = get_settings().board_api_key
    if env_key:
        return env_key, "env"
    return None, "none"


def extract_context_from_item(item: dict[str, Any]) -> str:
    """Flatten an item into context text: name, non-empty columns, recent updates."""
    lines = [f"Project: {item.get('name', '')}"]
    for column in item.get("column_values") or []:
        text = column.get("text")
        if text and text.strip():
            lines.append(f"{column.get('title') or column.get('id')}: {text}")

    updates = item.get("updates") or []
    if updates:
        lines.append("\nRecent Updates:")
        for update in updates[:MAX_CONTEXT_UPDATES]:
            lines.append(f"- {update.get('text_body', '')}")
    return "\n".join(lines)


class BoardClient:
    """Client for the board GraphQL API."""

    def __init__(self, api_key: str, api_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        """Initialize board client.

        Args:
            api_key: Board API token (sent verbatim in the Authorization header)
            api_url: GraphQL endpoint, defaults to settings.board_api_url
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.api_key = api_key
        self.api_url = api_url or get_settings().board_api_url
        self._transport = transport

    async def _query(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        async with httpx.AsyncClient(transport=self._transport, timeout=15.0) as client:
            try:
                response = await client.post(
                    self.api_url,
                    headers={"Authorization": self.api_key, "Content-Type": "application/json"},
                    json={"query": query, "variables": variables or {}},
                )
            except httpx.HTTPError as exc:
                logger.warning("board_request_failed", error=str(exc), error_type=type(exc).__name__)
                raise BoardError(f"Board API request failed: {exc}") from exc

        if response.status_code >= 400:
            raise BoardError(f"Board API error: {response.status_code}")

        payload = response.json()
        if payload.get("errors"):
            raise BoardError(f"Board GraphQL error: {payload['errors'][0].get('message', 'unknown')}")
        return payload.get("data") or {}

    async def search_boards(self, term: str | None = None) -> list[dict[str, Any]]:
        data = await self._query(_SEARCH_BOARDS)
        boards = data.get("boards") or []
        if term:
            needle = term.lower()
            boards = [b for b in boards if needle in (b.get("name") or "").lower()]
        return boards

    async def get_board_items(self, board_id: str) -> list[dict[str, Any]]:
        data = await self._query(_BOARD_ITEMS, {"boardId": [board_id]})
        boards = data.get("boards") or []
        if not boards:
            return []
        return ((boards[0] or {}).get("items_page") or {}).get("items") or []

    async def get_item_details(self, item_id: str) -> dict[str, Any] | None:
        data = await self._query(_ITEM_DETAILS, {"itemId": [item_id]})
        items = data.get("items") or []
        return items[0] if items else None
