# Файл: src/docshare_client/config.py

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

# --- 1. Настройки PostgreSQL ---
class PostgresConfig(BaseModel):
    user: str = "postgres"
    password: str = "postgres"
    host: str = "localhost"
    port: int = 5432
    db: str = "documents"

    pool_size: int = 5
    max_overflow: int = 5
    pool_timeout: int = 30
    pool_recycle: int = 1800
    application_name: str = "docshare_client"

    def get_pg_dsn(self) -> str:
        """Собирает DSN для SQLAlchemy из полей этого объекта."""
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.db}"

# --- 2. Настройки MinIO ---
class MinioConfig(BaseModel):
    endpoint: str = "localhost:9000"
    access_key: str = "minioadmin"
    secret_key: str = "minioadmin"   # он же ключ подписи presigned-ссылок
    bucket: str = "documents"
    secure: bool = False
    # С заданным регионом клиент подписывает ссылки локально, без запроса location бакета
    region: str = "us-east-1"


# --- 3. Политика выдачи токенов ---
class TokenConfig(BaseModel):
    access_ttl_hours: int = 4
    share_ttl_hours: int = 24 * 7
    download_link_ttl_hours: int = 1
    # Границы для TTL, которые передаёт вызывающая сторона
    min_ttl_hours: int = 1
    max_ttl_hours: int = 24


# --- 4. Основной класс для явной передачи конфигурации ---
class DocumentClientConfig(BaseModel):
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    minio: MinioConfig = Field(default_factory=MinioConfig)
    tokens: TokenConfig = Field(default_factory=TokenConfig)

# --- 5. Settings читает .env и переменные окружения ---
class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter='_',
        # POSTGRES_POOL_SIZE -> postgres.pool_size, а не postgres.pool.size
        env_nested_max_split=1,
        extra='ignore'
    )

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    minio: MinioConfig = Field(default_factory=MinioConfig)
    tokens: TokenConfig = Field(default_factory=TokenConfig)

_cached_settings: Optional[Settings] = None

def get_settings() -> Settings:
    """
    Возвращает синглтон-экземпляр настроек, создавая его при первом вызове.
    Это предотвращает ошибки валидации при импорте.
    """
    global _cached_settings
    if _cached_settings is None:
        _cached_settings = Settings()
    return _cached_settings


def reset_settings() -> None:
    """Сбрасывает кэш настроек (нужно тестам, которые меняют окружение)."""
    global _cached_settings
    _cached_settings = None
