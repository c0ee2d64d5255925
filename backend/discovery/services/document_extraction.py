"""DocumentExtractionService: uploads and document-to-context extraction.

Status applies to all documents of one engagement at once:
pending -> processing -> completed | failed. start_extraction() takes the
engagement with a single conditional UPDATE, so a second trigger while a run
is in flight gets ConflictError instead of racing the first.
"""

import os

import structlog

from discovery.core.config import get_settings
from discovery.core.exceptions import ConflictError, InvalidInputError, NotFoundError
from discovery.core.tasks import TaskSpawner
from discovery.db.models import DocumentStatus, EngagementDocument
from discovery.gateway.service import DiscoveryGateway, DocumentInput
from discovery.repositories.store import DiscoveryStore
from discovery.storage.blob import BlobStorage, document_key

logger = structlog.get_logger(__name__)

MAX_ERROR_MESSAGE_LENGTH = 1000


def validate_upload(filename: str, size_bytes: int) -> None:
    """Reject files with a disallowed extension, no content, or too many bytes."""
    settings = get_settings()
    extension = os.path.splitext(filename or "")[1].lower()
    if extension not in settings.allowed_document_extensions:
        allowed = ", ".join(settings.allowed_document_extensions)
        raise InvalidInputError(f"Unsupported file type '{extension or filename}'. Allowed: {allowed}")
    if size_bytes == 0:
        raise InvalidInputError(f"File '{filename}' is empty")
    if size_bytes > settings.max_document_bytes:
        limit_mb = settings.max_document_bytes // (1024 * 1024)
        raise InvalidInputError(f"File '{filename}' exceeds the {limit_mb}MB limit")


class DocumentExtractionService:
    """Stores uploaded documents and turns them into engagement context."""

    def __init__(
        self,
        store: DiscoveryStore,
        blobs: BlobStorage,
        gateway: DiscoveryGateway,
        tasks: TaskSpawner,
    ):
        self.store = store
        self.blobs = blobs
        self.gateway = gateway
        self.tasks = tasks

    async def upload(
        self, engagement_id: str, files: list[tuple[str, str, bytes]]
    ) -> list[EngagementDocument]:
        """Validate every file, then store bytes and rows.

        Args:
            engagement_id: Owning engagement
            files: (filename, content_type, data) triples

        Returns:
            The created EngagementDocument rows, all pending

        Raises:
            NotFoundError: Engagement does not exist
            InvalidInputError: No files, or any file fails validation (nothing is stored)
        """
        engagement = await self.store.get_engagement(engagement_id)
        if engagement is None:
            raise NotFoundError("Engagement not found")
        if not files:
            raise InvalidInputError("No files provided")
        for filename, _, data in files:
            validate_upload(filename, len(data))

        documents = []
        for filename, content_type, data in files:
            content_type = content_type or "application/octet-stream"
            key = document_key(str(engagement.id), filename)
            await self.blobs.put(key, data, content_type)
            documents.append(
                await self.store.create_document(engagement.id, filename, content_type, len(data), key)
            )
        logger.info("documents_uploaded", engagement_id=str(engagement.id), count=len(documents))
        return documents

    async def list_documents(self, engagement_id: str) -> list[EngagementDocument]:
        engagement = await self.store.get_engagement(engagement_id)
        if engagement is None:
            raise NotFoundError("Engagement not found")
        return await self.store.list_documents(engagement.id)

    async def start_extraction(self, engagement_id: str) -> str:
        """Flip the engagement's documents to processing and dispatch the run.

        Returns:
            "processing" once the background task has been dispatched

        Raises:
            NotFoundError: Engagement does not exist
            InvalidInputError: Engagement has no documents
            ConflictError: An extraction is already processing
        """
        engagement = await self.store.get_engagement(engagement_id)
        if engagement is None:
            raise NotFoundError("Engagement not found")
        if not await self.store.list_documents(engagement.id):
            raise InvalidInputError("No documents uploaded for this engagement")

        flipped = await self.store.begin_extraction(engagement.id)
        if flipped == 0:
            raise ConflictError("Extraction already in progress")

        logger.info("extraction_started", engagement_id=str(engagement.id), documents=flipped)
        await self.tasks.spawn(f"document-extraction:{engagement.id}", self.run_extraction, str(engagement.id))
        return DocumentStatus.PROCESSING.value

    async def run_extraction(self, engagement_id: str) -> None:
        """Fetch blobs, extract context, update the engagement. NEVER raises."""
        try:
            documents = await self.store.list_documents(engagement_id)
            inputs = [
                DocumentInput(
                    filename=doc.filename,
                    content_type=doc.content_type,
                    data=await self.blobs.get(doc.blob_key),
                )
                for doc in reversed(documents)
            ]
            extraction = await self.gateway.extract_from_documents(inputs)
            await self.store.update_engagement_from_documents(
                engagement_id, extraction.description, extraction.context
            )
            await self.store.set_document_statuses(engagement_id, DocumentStatus.COMPLETED)
            logger.info("extraction_completed", engagement_id=engagement_id, documents=len(inputs))
        except Exception as exc:
            logger.warning(
                "extraction_failed",
                engagement_id=engagement_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            message = (str(exc) or type(exc).__name__)[:MAX_ERROR_MESSAGE_LENGTH]
            try:
                await self.store.set_document_statuses(engagement_id, DocumentStatus.FAILED, message)
            except Exception as status_exc:
                logger.error("extraction_status_write_failed", engagement_id=engagement_id, error=str(status_exc))
