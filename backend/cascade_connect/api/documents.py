"""
Cascade Connect - Documents API
================================

Homeowner documents and file uploads (Cloudinary).
"""

from uuid import UUID, uuid4

import structlog
from fastapi import APIRouter, File, HTTPException, UploadFile, status
from sqlalchemy import select

from cascade_connect.api.deps import CurrentUser, DbSession, StaffUser, Storage, get_homeowner_or_404
from cascade_connect.core.exceptions import IntegrationNotConfigured, UploadError
from cascade_connect.core.models import Document, Homeowner
from cascade_connect.core.schemas import ChatAttachment, DocumentCreate, DocumentResponse
from cascade_connect.core.storage import document_type_for

router = APIRouter(tags=["Documents"])
logger = structlog.get_logger()


async def upload_or_raise(storage, file: UploadFile, folder: str):
    """Upload through the storage client, mapping failures to 503/502."""
    try:
        return await storage.upload(file.file, folder=folder, filename=file.filename or "upload")
    except IntegrationNotConfigured as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e
    except UploadError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
        ) from e


@router.get(
    "/homeowners/{homeowner_id}/documents",
    response_model=list[DocumentResponse],
    summary="List homeowner documents",
)
async def list_documents(
    homeowner_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> list[DocumentResponse]:
    await get_homeowner_or_404(homeowner_id, current_user, db)
    result = await db.execute(
        select(Document)
        .where(Document.homeowner_id == homeowner_id)
        .order_by(Document.uploaded_at.desc())
    )
    return [DocumentResponse.model_validate(d) for d in result.scalars().all()]


@router.post(
    "/homeowners/{homeowner_id}/documents",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Attach an already-hosted document",
)
async def create_document(
    homeowner_id: UUID,
    data: DocumentCreate,
    current_user: StaffUser,
    db: DbSession,
) -> DocumentResponse:
    await get_homeowner_or_404(homeowner_id, current_user, db)

    document = Document(
        id=uuid4(),
        homeowner_id=homeowner_id,
        name=data.name,
        url=data.url,
        type=data.type.upper(),
        uploaded_by=current_user.name,
    )
    db.add(document)
    await db.commit()
    await db.refresh(document)
    return DocumentResponse.model_validate(document)


@router.post(
    "/homeowners/{homeowner_id}/documents/upload",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a document file",
    responses={
        502: {"description": "Upload rejected by storage"},
        503: {"description": "Uploads not configured"},
    },
)
async def upload_document(
    homeowner_id: UUID,
    current_user: StaffUser,
    db: DbSession,
    storage: Storage,
    file: UploadFile = File(...),
) -> DocumentResponse:
    await get_homeowner_or_404(homeowner_id, current_user, db)

    uploaded = await upload_or_raise(storage, file, folder=f"homeowners/{homeowner_id}")

    document = Document(
        id=uuid4(),
        homeowner_id=homeowner_id,
        name=file.filename or "upload",
        url=uploaded.url,
        type=document_type_for(file.filename or "", file.content_type),
        uploaded_by=current_user.name,
    )
    db.add(document)
    await db.commit()
    await db.refresh(document)

    logger.info("document_uploaded", homeowner_id=str(homeowner_id), document_id=str(document.id))
    return DocumentResponse.model_validate(document)


@router.delete(
    "/documents/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete document",
)
async def delete_document(document_id: UUID, current_user: StaffUser, db: DbSession) -> None:
    document = await db.get(Document, document_id)
    homeowner = await db.get(Homeowner, document.homeowner_id) if document else None
    if document is None or homeowner is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found",
        )
    await get_homeowner_or_404(homeowner.id, current_user, db)

    await db.delete(document)
    await db.commit()


@router.post(
    "/uploads/attachment",
    response_model=ChatAttachment,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a chat attachment",
)
async def upload_attachment(
    current_user: StaffUser,
    storage: Storage,
    file: UploadFile = File(...),
) -> ChatAttachment:
    uploaded = await upload_or_raise(storage, file, folder="chat")
    kind = "image" if uploaded.resource_type == "image" else "file"
    return ChatAttachment(
        url=uploaded.url,
        type=kind,
        filename=file.filename,
        public_id=uploaded.public_id,
    )
