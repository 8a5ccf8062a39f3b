class DocumentClientError(Exception):
    """Base class."""


class DatabaseError(DocumentClientError):
    pass


class NotFoundError(DocumentClientError):
    pass


class DocumentNotFoundError(NotFoundError):
    pass


class ObjectNotFoundError(NotFoundError):
    """Объекта с таким ключом нет в хранилище."""


class ValidationError(DocumentClientError):
    """Параметр вызывающей стороны вне контракта. Бросается до любого I/O."""


class StorageError(DocumentClientError):
    pass


class StorageUnavailableError(StorageError):
    pass


class InvalidKeyError(StorageError):
    pass


class ConversionFailedError(DocumentClientError):
    pass


class UploadFailedError(DocumentClientError):
    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class UnsupportedPreviewError(DocumentClientError):
    """Для этого типа файла превью не строится."""
