from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Integer, LargeBinary, String, text
from sqlalchemy.orm import Mapped, mapped_column

from docshare_client.db.base import Base, CreatedAt, UpdatedAt
from docshare_client.models.document import DocumentInDB


class DocumentORM(Base):
    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[Optional[str]] = mapped_column(String)
    # Вычисляется по расширению, пользователь его не передаёт
    file_type: Mapped[Optional[str]] = mapped_column(String)

    # Ключ объекта в бакете. После вставки не меняется
    blob_name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    file_name: Mapped[str] = mapped_column(String, nullable=False)
    file_path: Mapped[Optional[str]] = mapped_column(String)

    upload_datetime: Mapped[CreatedAt]
    last_modified_datetime: Mapped[UpdatedAt]

    download_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))

    # Пустая строка = токен ещё не выдан
    sas_token: Mapped[str] = mapped_column(String, nullable=False, default="", server_default=text("''"))
    sas_expiration_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Legacy: встроенное превью, больше не заполняется
    preview_data: Mapped[Optional[bytes]] = mapped_column(LargeBinary, deferred=True)

    __table_args__ = (
        CheckConstraint("download_count >= 0", name="download_count_non_negative"),
        CheckConstraint("last_modified_datetime >= upload_datetime", name="modified_after_upload"),
        CheckConstraint(
            "sas_expiration_time IS NULL OR sas_expiration_time > upload_datetime",
            name="sas_expires_after_upload",
        ),
    )

    def to_pydantic(self) -> DocumentInDB:
        return DocumentInDB.model_validate(self)
