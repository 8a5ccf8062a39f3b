from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class DocumentCreate(BaseModel):
    name: Optional[str] = None
    file_name: str
    blob_name: str
    file_type: Optional[str] = None
    file_path: Optional[str] = None


class DocumentInDB(DocumentCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    upload_datetime: datetime
    last_modified_datetime: datetime
    download_count: int = 0
    sas_token: str = ""
    sas_expiration_time: Optional[datetime] = None


class DocumentPreview(BaseModel):
    document_id: int
    preview_data: bytes
    # Тип исходного документа
    file_type: str
    # Что реально лежит в preview_data (PDF превращается в PNG)
    media_type: str


class DownloadedDocument(BaseModel):
    document_id: int
    content: bytes
    file_name: str
    file_type: str
    download_count: int
