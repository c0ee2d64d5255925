"""Admin routes for the read-only project-management board integration."""

from fastapi import APIRouter, Depends

from discovery.api.dependencies import get_config_store
from discovery.core.auth import require_admin
from discovery.core.exceptions import InvalidInputError, NotFoundError
from discovery.integrations.board import (
    BOARD_API_KEY_CONFIG,
    BoardClient,
    extract_context_from_item,
    resolve_board_api_key,
)
from discovery.repositories.cache import ConfigStore
from discovery.schemas.admin import BoardSettingsRequest

router = APIRouter(dependencies=[Depends(require_admin)])


async def get_board_client(config: ConfigStore = Depends(get_config_store)) -> BoardClient:
    api_key, _ = await resolve_board_api_key(config)
    if not api_key:
        raise InvalidInputError("Board API key not configured")
    return BoardClient(api_key)


@router.get("/board/search")
async def search_boards(term: str | None = None, client: BoardClient = Depends(get_board_client)):
    return {"boards": await client.search_boards(term)}


@router.get("/board/boards/{board_id}/items")
async def get_board_items(board_id: str, client: BoardClient = Depends(get_board_client)):
    return {"items": await client.get_board_items(board_id)}


@router.get("/board/items/{item_id}")
async def get_item(item_id: str, client: BoardClient = Depends(get_board_client)):
    """Item details plus a context text ready to paste into an engagement."""
    item = await client.get_item_details(item_id)
    if item is None:
        raise NotFoundError("Item not found")
    return {"item": item, "context": extract_context_from_item(item)}


@router.get("/settings/board")
async def get_board_settings(config: ConfigStore = Depends(get_config_store)):
    api_key, source = await resolve_board_api_key(config)
    return {"configured": bool(api_key), "source": source}


@router.post("/settings/board")
async def save_board_settings(body: BoardSettingsRequest, config: ConfigStore = Depends(get_config_store)):
    if not body.api_key or not body.api_key.strip():
        raise InvalidInputError("API key is required")
    await config.set(BOARD_API_KEY_CONFIG, body.api_key.strip())
    return {"success": True}
