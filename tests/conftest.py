import pytest

from fakes import T0, FakeBlobStore, FakeMetaRepo, FakeRasterizer, FrozenClock
from docshare_client.client import DocumentClient
from docshare_client.config import TokenConfig
from docshare_client.services.token_issuer import TokenIssuer

@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(T0)


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def meta_repo(clock) -> FakeMetaRepo:
    return FakeMetaRepo(clock)


@pytest.fixture
def policy() -> TokenConfig:
    return TokenConfig()


@pytest.fixture
def token_issuer(meta_repo, blob_store, policy, clock) -> TokenIssuer:
    return TokenIssuer(meta_repo, blob_store, policy, clock=clock)


@pytest.fixture
def rasterizer() -> FakeRasterizer:
    return FakeRasterizer()


@pytest.fixture
def client(meta_repo, blob_store, token_issuer, rasterizer, policy) -> DocumentClient:
    return DocumentClient(
        meta_repo=meta_repo,
        blob_store=blob_store,
        token_issuer=token_issuer,
        rasterizer=rasterizer,
        policy=policy,
    )
