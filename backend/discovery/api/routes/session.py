"""Public stakeholder session API: the token in the path is the only credential."""

from fastapi import APIRouter, Body, Depends

from discovery.api.dependencies import get_conversation_engine, get_store
from discovery.core.exceptions import NotFoundError
from discovery.repositories.store import DiscoveryStore
from discovery.schemas.session import (
    AnswerRequest,
    BatchResponse,
    PublicSession,
    PublicSessionResponse,
    SubmitRequest,
)
from discovery.services.conversation_engine import ConversationEngine

router = APIRouter()


@router.get("/{token}", response_model=PublicSessionResponse)
async def get_session(token: str, store: DiscoveryStore = Depends(get_store)):
    """Validate a token and return display metadata for the session page."""
    ctx = await store.get_session_by_token(token)
    if ctx is None:
        raise NotFoundError("Invalid session token")
    return PublicSessionResponse(
        session=PublicSession(
            id=str(ctx.session.id),
            stakeholder_name=ctx.session.stakeholder_name,
            stakeholder_role=ctx.session.stakeholder_role,
            status=ctx.session.status,
            engagement_name=ctx.engagement.name,
            engagement_description=ctx.engagement.description,
        )
    )


@router.post("/{token}/start", response_model=BatchResponse)
async def start_session(token: str, engine: ConversationEngine = Depends(get_conversation_engine)):
    """Start a fresh conversation or resume the stored one; returns the next batch."""
    return BatchResponse(batch=await engine.start(token))


@router.post("/{token}/answer", response_model=BatchResponse)
async def submit_answers(
    token: str,
    body: AnswerRequest,
    engine: ConversationEngine = Depends(get_conversation_engine),
):
    return BatchResponse(batch=await engine.submit_answers(token, body.answers))


@router.post("/{token}/submit")
async def submit_session(
    token: str,
    body: SubmitRequest | None = Body(default=None),
    engine: ConversationEngine = Depends(get_conversation_engine),
):
    """Complete the session. Summary generation continues in the background."""
    trailing = body.answers if body is not None else None
    return await engine.finalize(token, trailing)
