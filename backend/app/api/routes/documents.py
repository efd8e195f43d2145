"""Document endpoints - upload, process, reprocess, list, get, delete, search."""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from pydantic import BaseModel, ConfigDict, Field

from backend.app.api.auth import get_current_context
from backend.app.db.context import RequestContext
from backend.app.db.repositories import NewDocument
from backend.app.docs.worker import IngestJob
from backend.app.errors import AppError, NotFoundError, StorageError, ValidationError
from backend.app.middleware.ratelimit import enforce_rate_limit
from backend.app.models.docs import Document, DocumentStatus, RetrievalResult
from backend.app.services import Services, get_services

router = APIRouter(prefix="/documents", tags=["documents"])
logger = logging.getLogger(__name__)

MEDIA_TYPE_BY_EXTENSION = {
    "pdf": "application/pdf",
    "txt": "text/plain",
    "csv": "text/csv",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}
ALLOWED_MEDIA_TYPES = frozenset(MEDIA_TYPE_BY_EXTENSION.values())


class ProcessDocumentRequest(BaseModel):
    """Request body for POST /documents/process."""

    model_config = ConfigDict(populate_by_name=True)

    document_id: uuid.UUID = Field(..., alias="documentId")


class ProcessDocumentResponse(BaseModel):
    """Acknowledgement that ingestion was scheduled."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    document_id: uuid.UUID = Field(..., alias="documentId")


class DocumentListResponse(BaseModel):
    """Response for GET /documents."""

    documents: list[Document]


class DocumentSearchResponse(BaseModel):
    """Response for GET /documents/search."""

    query: str
    results: list[RetrievalResult]


def _file_extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def _too_large(filename: str, max_bytes: int) -> ValidationError:
    return ValidationError(f"{filename} is too large (max {max_bytes // (1024 * 1024)}MB)")


async def read_upload(file: UploadFile, max_bytes: int) -> bytes:
    """Read an upload without holding more than ``max_bytes + 1`` bytes.

    Raises:
        ValidationError: If the declared or actual size exceeds ``max_bytes``
    """
    filename = file.filename or "upload"
    if file.size is not None and file.size > max_bytes:
        raise _too_large(filename, max_bytes)

    data = await file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise _too_large(filename, max_bytes)
    return data


def validate_upload(filename: str, content_type: str | None, size: int, max_bytes: int) -> str:
    """Check size and type of an upload.

    A declared type outside the supported set (missing, octet-stream, or
    simply wrong) is replaced by the type the file extension implies.

    Returns:
        The media type to record for the document

    Raises:
        ValidationError: If the file is too large or of an unsupported type
    """
    if size > max_bytes:
        raise _too_large(filename, max_bytes)
    if size == 0:
        raise ValidationError(f"{filename} is empty")

    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type in ALLOWED_MEDIA_TYPES:
        return media_type

    media_type = MEDIA_TYPE_BY_EXTENSION.get(_file_extension(filename), "")
    if not media_type:
        raise ValidationError(f"{filename} is not a supported file type")
    return media_type


async def _load_owned(services: Services, document_id: uuid.UUID, ctx: RequestContext) -> Document:
    document = await services.documents.get(document_id, ctx)
    if document is None:
        raise NotFoundError("Document not found")
    return document


async def _start_ingestion(services: Services, document: Document) -> None:
    """Reset to processing and hand the document to the worker."""
    await services.documents.set_status(document.id, status=DocumentStatus.processing)
    await services.worker.submit(IngestJob(document=document))


@router.post("", response_model=Document, status_code=status.HTTP_202_ACCEPTED)
async def upload_document(
    file: Annotated[UploadFile, File()],
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    services: Annotated[Services, Depends(get_services)],
) -> Document:
    """Store an uploaded file, create its row and schedule ingestion.

    Returns:
        The document as it stands when the response is sent
    """
    filename = file.filename or "upload"
    data = await read_upload(file, services.settings.upload_max_bytes)
    media_type = validate_upload(
        filename, file.content_type, len(data), services.settings.upload_max_bytes
    )

    ext = _file_extension(filename)
    storage_path = f"{ctx.user_id}/{uuid.uuid4()}" + (f".{ext}" if ext else "")

    try:
        await services.storage.upload(storage_path, data, media_type)
    except StorageError as e:
        logger.error(f"Upload failed for {filename}: {e}")
        raise AppError(f"Upload failed: {e}") from e

    try:
        document = await services.documents.create(
            NewDocument(
                name=filename,
                file_type=media_type,
                file_size=len(data),
                storage_path=storage_path,
            ),
            ctx,
        )
    except Exception:
        # Row and object are created together or not at all
        await services.storage.remove([storage_path])
        raise

    await services.worker.submit(IngestJob(document=document))

    return await services.documents.get(document.id, ctx) or document


@router.post(
    "/process", response_model=ProcessDocumentResponse, status_code=status.HTTP_202_ACCEPTED
)
async def process_document(
    request: ProcessDocumentRequest,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    services: Annotated[Services, Depends(get_services)],
) -> ProcessDocumentResponse:
    """Schedule ingestion of an existing document."""
    document = await _load_owned(services, request.document_id, ctx)
    await _start_ingestion(services, document)

    return ProcessDocumentResponse(
        message="Document processing started", document_id=document.id
    )


@router.post(
    "/{document_id}/reprocess",
    response_model=ProcessDocumentResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def reprocess_document(
    document_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    services: Annotated[Services, Depends(get_services)],
) -> ProcessDocumentResponse:
    """Re-run ingestion from either terminal state, replacing prior chunks."""
    document = await _load_owned(services, document_id, ctx)
    await _start_ingestion(services, document)

    return ProcessDocumentResponse(
        message="Document reprocessing started", document_id=document.id
    )


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: Annotated[Services, Depends(get_services)],
    status_filter: Annotated[DocumentStatus | None, Query(alias="status")] = None,
) -> DocumentListResponse:
    """List the caller's documents, newest first."""
    documents = await services.documents.list_for_user(ctx, status=status_filter)
    return DocumentListResponse(documents=documents)


@router.get("/search", response_model=DocumentSearchResponse)
async def search_documents(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: Annotated[Services, Depends(get_services)],
    query: Annotated[str, Query(min_length=1, max_length=1000)],
    document_id: Annotated[uuid.UUID | None, Query()] = None,
) -> DocumentSearchResponse:
    """Rank the caller's chunks against a query, optionally within one document."""
    if document_id is not None:
        document = await _load_owned(services, document_id, ctx)
        results = await services.retriever.retrieve(query, [document], ctx)
    else:
        results = await services.retriever.retrieve_for_user(query, ctx)

    return DocumentSearchResponse(query=query, results=results)


@router.get("/{document_id}", response_model=Document)
async def get_document(
    document_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: Annotated[Services, Depends(get_services)],
) -> Document:
    """Fetch one document; clients poll this for status changes."""
    return await _load_owned(services, document_id, ctx)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    services: Annotated[Services, Depends(get_services)],
) -> Response:
    """Delete the stored file, the chunks and the document row."""
    document = await _load_owned(services, document_id, ctx)

    try:
        await services.storage.remove([document.storage_path])
    except StorageError as e:
        logger.warning(f"Could not remove stored file for document {document.id}: {e}")

    # Row first: an ingestion finishing afterwards sees it gone and drops its chunks
    await services.documents.delete(document.id, ctx)
    await services.chunks.delete_chunks(document.id)

    return Response(status_code=status.HTTP_204_NO_CONTENT)
