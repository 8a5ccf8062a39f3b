# Тонкий HTTP-слой поверх DocumentClient
import logging
from datetime import datetime
from typing import Annotated, AsyncIterator, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, HTTPException, Query, Response, UploadFile, status
from pydantic import BaseModel

from docshare_client import DocumentClient, create_document_client
from docshare_client.exceptions import (
    ConversionFailedError,
    NotFoundError,
    UnsupportedPreviewError,
    UploadFailedError,
    ValidationError,
)
from docshare_client.models.document import DocumentInDB
from docshare_client.repositories import MISSING
from docshare_client.services.token_issuer import attachment_disposition

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["Documents"])


async def get_document_client() -> AsyncIterator[DocumentClient]:
    client = create_document_client()
    try:
        yield client
    finally:
        await client.aclose()

ClientDep = Annotated[DocumentClient, Depends(get_document_client)]


class UploadResponse(BaseModel):
    document_id: int

class LinkResponse(BaseModel):
    url: str

class DownloadCountResponse(BaseModel):
    document_id: int
    download_count: int

class ShareLinkResponse(BaseModel):
    token: str
    expiration_time: datetime
    share_link: str
    share_link_expiration_time: datetime


def _not_found(doc_id: int) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Document {doc_id} not found.")


@router.get("", response_model=list[DocumentInDB])
async def list_documents(client: ClientDep, limit: Optional[int] = Query(None, ge=1), offset: int = Query(0, ge=0)):
    return await client.list_documents(limit, offset)


@router.post("/upload", response_model=UploadResponse)
async def upload_document(client: ClientDep, file: UploadFile = File(...), name: Optional[str] = Form(None)):
    content = await file.read()
    try:
        doc_id = await client.upload_document(content, name, file.filename or "")
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except UploadFailedError:
        logger.exception("Upload failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="An error occurred during document upload.")
    return UploadResponse(document_id=doc_id)


@router.delete("/{doc_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(doc_id: int, client: ClientDep):
    await client.delete_document(doc_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{doc_id}/preview")
async def get_preview(doc_id: int, client: ClientDep):
    try:
        preview = await client.get_preview(doc_id)
    except NotFoundError:
        raise _not_found(doc_id)
    except UnsupportedPreviewError as e:
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(e))
    except ConversionFailedError:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Preview unavailable.")
    if preview is None:
        raise _not_found(doc_id)
    return Response(content=preview.preview_data, media_type=preview.media_type)


@router.get("/{doc_id}/download")
async def download_document(doc_id: int, client: ClientDep):
    try:
        downloaded = await client.download_document(doc_id)
    except NotFoundError:
        raise _not_found(doc_id)
    if downloaded is None:
        raise _not_found(doc_id)
    return Response(
        content=downloaded.content,
        media_type=downloaded.file_type,
        headers={"Content-Disposition": attachment_disposition(downloaded.file_name)},
    )


@router.get("/{doc_id}/download-link", response_model=LinkResponse)
async def get_download_link(doc_id: int, client: ClientDep):
    url = await client.get_download_link(doc_id)
    if url is None:
        raise _not_found(doc_id)
    return LinkResponse(url=url)


@router.get("/{doc_id}/download-count", response_model=DownloadCountResponse)
async def get_download_count(doc_id: int, client: ClientDep):
    count = await client.get_download_count(doc_id)
    if count == MISSING:
        raise _not_found(doc_id)
    return DownloadCountResponse(document_id=doc_id, download_count=count)


@router.get("/{doc_id}/share-link", response_model=ShareLinkResponse)
async def get_share_link(
    doc_id: int,
    client: ClientDep,
    valid_for_hours: int = Query(..., alias="validForHours"),
    share_link_expires_in_hours: int = Query(..., alias="shareLinkExpiresInHours"),
):
    try:
        result = await client.get_share_link(doc_id, valid_for_hours, share_link_expires_in_hours)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if result is None:
        raise _not_found(doc_id)
    return ShareLinkResponse(
        token=result.token,
        expiration_time=result.expires_at,
        share_link=result.share_link.url,
        share_link_expiration_time=result.share_link.expires_at,
    )


def create_app() -> FastAPI:
    app = FastAPI(title="docshare")
    app.include_router(router)
    return app
