from .blob_store import BlobStore, sanitize_blob_name, validate_blob_name
from .minio_repository import MinioRepository
from .pg_repositoryMeta import MetaDataRepository, MISSING

__all__ = [
    "BlobStore",
    "sanitize_blob_name",
    "validate_blob_name",
    "MinioRepository",
    "MetaDataRepository",
    "MISSING",
]
