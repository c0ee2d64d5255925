"""Admin API routes: engagements, stakeholder sessions, summaries and documents.

Every route except /login requires a bearer token from /login.
"""

from fastapi import APIRouter, Depends, File, Request, UploadFile, status

from discovery.api.dependencies import (
    get_engagement_service,
    get_extraction_service,
    get_summarizer,
)
from discovery.core.auth import get_admin_tokens, login, require_admin
from discovery.core.config import get_settings
from discovery.repositories.cache import AdminTokenStore
from discovery.schemas.admin import (
    CreatedSession,
    CreateEngagementRequest,
    CreateSessionBatchRequest,
    CreateSessionRequest,
    DocumentView,
    EngagementDetailView,
    EngagementListItem,
    EngagementView,
    LoginRequest,
    ResultView,
    SessionView,
    SteeringResponse,
    SuggestSteeringRequest,
)
from discovery.services.document_extraction import DocumentExtractionService
from discovery.services.engagement_service import EngagementService, NewStakeholder, shareable_link
from discovery.services.summarization import SummarizationOrchestrator

public_router = APIRouter()
router = APIRouter(dependencies=[Depends(require_admin)])


def _base_url(request: Request) -> str:
    return get_settings().public_base_url or str(request.base_url)


def _created(request: Request, session) -> dict:
    return CreatedSession(
        session=SessionView.model_validate(session),
        shareable_link=shareable_link(_base_url(request), session.token),
    ).model_dump(mode="json", by_alias=True)


@public_router.post("/login")
async def admin_login(body: LoginRequest, tokens: AdminTokenStore = Depends(get_admin_tokens)):
    return {"token": await login(body.password, tokens)}


# ==================== ENGAGEMENTS ====================


@router.get("/engagements")
async def list_engagements(service: EngagementService = Depends(get_engagement_service)):
    rows = await service.list_engagements()
    return {
        "engagements": [
            EngagementListItem(
                **EngagementView.model_validate(row.engagement).model_dump(),
                session_count=row.session_count,
                completed_count=row.completed_count,
            ).model_dump(mode="json")
            for row in rows
        ]
    }


@router.post("/engagements", status_code=status.HTTP_201_CREATED)
async def create_engagement(
    body: CreateEngagementRequest,
    service: EngagementService = Depends(get_engagement_service),
):
    engagement = await service.create_engagement(
        body.name or "", body.description, body.context, body.board_id, body.board_item_id
    )
    return {"engagement": EngagementView.model_validate(engagement).model_dump(mode="json")}


@router.get("/engagements/{engagement_id}")
async def get_engagement(engagement_id: str, service: EngagementService = Depends(get_engagement_service)):
    detail = await service.get_detail(engagement_id)
    view = EngagementDetailView(
        **EngagementView.model_validate(detail.engagement).model_dump(),
        sessions=[SessionView.model_validate(s) for s in detail.sessions],
        results=[ResultView.model_validate(r) for r in detail.results],
    )
    return {"engagement": view.model_dump(mode="json")}


@router.delete("/engagements/{engagement_id}")
async def delete_engagement(engagement_id: str, service: EngagementService = Depends(get_engagement_service)):
    await service.delete_engagement(engagement_id)
    return {"success": True}


# ==================== SESSIONS ====================


@router.post("/engagements/{engagement_id}/sessions", status_code=status.HTTP_201_CREATED)
async def create_session(
    engagement_id: str,
    body: CreateSessionRequest,
    request: Request,
    service: EngagementService = Depends(get_engagement_service),
):
    sessions = await service.create_sessions(
        engagement_id,
        [
            NewStakeholder(
                name=body.stakeholder_name or "",
                email=body.stakeholder_email,
                role=body.stakeholder_role,
                steering_prompt=body.steering_prompt,
            )
        ],
    )
    return _created(request, sessions[0])


@router.post("/engagements/{engagement_id}/sessions/batch", status_code=status.HTTP_201_CREATED)
async def create_session_batch(
    engagement_id: str,
    body: CreateSessionBatchRequest,
    request: Request,
    service: EngagementService = Depends(get_engagement_service),
):
    stakeholders = [
        NewStakeholder(
            name=(s.name or "").strip(),
            email=(s.email or "").strip() or None,
            role=(s.role or "").strip() or None,
            steering_prompt=(s.steering_prompt or "").strip() or None,
        )
        for s in body.stakeholders
    ]
    sessions = await service.create_sessions(engagement_id, stakeholders)
    return {"sessions": [_created(request, s) for s in sessions]}


@router.post("/engagements/{engagement_id}/suggest-steering")
async def suggest_steering(
    engagement_id: str,
    body: SuggestSteeringRequest,
    service: EngagementService = Depends(get_engagement_service),
):
    suggestions = await service.suggest_steering(engagement_id, body.stakeholder_name or "", body.stakeholder_role)
    return SteeringResponse(suggestions=suggestions).model_dump(mode="json")


# ==================== SUMMARIES ====================


@router.post("/engagements/{engagement_id}/refresh-overview")
async def refresh_overview(
    engagement_id: str,
    summarizer: SummarizationOrchestrator = Depends(get_summarizer),
):
    """Schedule overview synthesis; poll the engagement for engagement_overview."""
    return {"status": await summarizer.refresh_overview(engagement_id)}


@router.post("/sessions/{session_id}/retry-summary")
async def retry_summary(
    session_id: str,
    summarizer: SummarizationOrchestrator = Depends(get_summarizer),
):
    """Regenerate a stalled summary synchronously from the stored answers."""
    summary = await summarizer.retry_summary(session_id)
    return summary.to_wire()


# ==================== DOCUMENTS ====================


@router.post("/engagements/{engagement_id}/documents", status_code=status.HTTP_201_CREATED)
async def upload_documents(
    engagement_id: str,
    files: list[UploadFile] = File(default=[]),
    service: DocumentExtractionService = Depends(get_extraction_service),
):
    payload = [(f.filename or "", f.content_type or "", await f.read()) for f in files]
    documents = await service.upload(engagement_id, payload)
    return {"documents": [DocumentView.model_validate(d).model_dump(mode="json") for d in documents]}


@router.get("/engagements/{engagement_id}/documents")
async def list_documents(
    engagement_id: str,
    service: DocumentExtractionService = Depends(get_extraction_service),
):
    documents = await service.list_documents(engagement_id)
    return {"documents": [DocumentView.model_validate(d).model_dump(mode="json") for d in documents]}


@router.post("/engagements/{engagement_id}/documents/extract", status_code=status.HTTP_202_ACCEPTED)
async def extract_documents(
    engagement_id: str,
    service: DocumentExtractionService = Depends(get_extraction_service),
):
    return {"status": await service.start_extraction(engagement_id)}
