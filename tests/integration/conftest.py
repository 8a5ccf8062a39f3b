import os
import pytest
import pytest_asyncio
from testcontainers.postgres import PostgresContainer
from testcontainers.minio import MinioContainer
from sqlalchemy.ext.asyncio import create_async_engine

from docshare_client.db.base import Base
from docshare_client import DocumentClient, create_document_client
from docshare_client.config import get_settings, reset_settings


@pytest.fixture(scope="session")
def _test_containers():
    """
    Запускает Docker-контейнеры один раз на всю тестовую сессию.
    Устанавливает переменные окружения для подключения к ним.
    """
    postgres = PostgresContainer("postgres:15")
    minio = MinioContainer("minio/minio:latest", access_key="minioadmin", secret_key="minioadmin")

    postgres.start()
    minio.start()

    os.environ["POSTGRES_USER"] = postgres.username
    os.environ["POSTGRES_PASSWORD"] = postgres.password
    os.environ["POSTGRES_DB"] = postgres.dbname
    os.environ["POSTGRES_HOST"] = postgres.get_container_host_ip()
    os.environ["POSTGRES_PORT"] = str(postgres.get_exposed_port(5432))

    minio_config = minio.get_config()
    os.environ["MINIO_ENDPOINT"] = minio_config["endpoint"].replace("http://", "")
    os.environ["MINIO_ACCESS_KEY"] = minio_config["access_key"]
    os.environ["MINIO_SECRET_KEY"] = minio_config["secret_key"]
    os.environ["MINIO_SECURE"] = "False"
    os.environ["MINIO_BUCKET"] = "test-bucket"
    reset_settings()

    yield
    postgres.stop()
    minio.stop()
    reset_settings()


@pytest_asyncio.fixture(scope="function")
async def db_engine(_test_containers):
    """
    Создает движок для тестовой БД и создает в ней все таблицы.
    После теста все таблицы удаляются для полной изоляции.
    """
    engine = create_async_engine(get_settings().postgres.get_pg_dsn())

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def data_client(db_engine) -> DocumentClient:
    """
    Собирает DocumentClient через ту же фабрику, что и реальное приложение.
    """
    client = create_document_client()
    await client.blobs.check_connection()
    yield client
    await client.aclose()
