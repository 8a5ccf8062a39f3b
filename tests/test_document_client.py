import asyncio
from datetime import timedelta

import pytest

from fakes import T0, FakeRasterizer
from docshare_client.exceptions import (
    ConversionFailedError,
    ObjectNotFoundError,
    StorageUnavailableError,
    UnsupportedPreviewError,
    UploadFailedError,
    ValidationError,
)
from docshare_client.repositories import MISSING

pytestmark = pytest.mark.asyncio

PNG = b"\x89PNG\r\n\x1a\n-image"


async def test_upload_small_text_file_scenario(client):
    doc_id = await client.upload_document(b"0123456789", "Notes", "a.txt")

    assert doc_id == 1
    doc = await client.get_document(1)
    assert doc.file_type == "application/octet-stream"
    assert await client.get_download_count(1) == 0

    downloaded = await client.download_document(1)
    assert downloaded.content == b"0123456789"
    assert downloaded.file_name == "a.txt"
    assert await client.get_download_count(1) == 1


async def test_upload_persists_blob_record_and_token(client, blob_store, meta_repo):
    doc_id = await client.upload_document(b"%PDF-1.7 body", "Report", "Q1 report.PDF")

    doc = meta_repo.rows[doc_id]
    assert doc.name == "Report"
    assert doc.file_name == "Q1 report.PDF"
    assert doc.file_type == "application/pdf"
    assert doc.blob_name.endswith(".PDF")
    assert doc.file_path == f"test-bucket/{doc.blob_name}"
    assert blob_store.objects[doc.blob_name] == b"%PDF-1.7 body"
    assert doc.sas_token.startswith("https://blobs.local/")
    assert doc.sas_expiration_time == T0 + timedelta(hours=4)
    assert doc.download_count == 0
    assert doc.last_modified_datetime >= doc.upload_datetime


async def test_upload_writes_blob_before_metadata(client, blob_store, meta_repo):
    order = []
    original_put, original_insert = blob_store.put_object, meta_repo.insert

    async def put(*a, **kw):
        order.append("put")
        return await original_put(*a, **kw)

    async def insert(*a, **kw):
        order.append("insert")
        return await original_insert(*a, **kw)

    blob_store.put_object, meta_repo.insert = put, insert
    await client.upload_document(b"x", None, "x.png")

    assert order == ["put", "insert"]


async def test_blob_keys_are_unique_and_sanitized(client, meta_repo):
    first = await client.upload_document(b"1", None, "scan.jp*g")
    second = await client.upload_document(b"2", None, "scan.jp*g")

    a, b = meta_repo.rows[first].blob_name, meta_repo.rows[second].blob_name
    assert a != b
    assert a.endswith(".jpg") and "*" not in a


async def test_display_name_keeps_only_the_file_name(client, meta_repo):
    doc_id = await client.upload_document(b"1", None, "C:\\Users\\me\\memo.docx")
    assert meta_repo.rows[doc_id].file_name == "memo.docx"


async def test_empty_upload_is_rejected_before_io(client, blob_store, meta_repo):
    with pytest.raises(ValidationError):
        await client.upload_document(b"", "empty", "a.txt")
    assert blob_store.calls == [] and meta_repo.calls == []


async def test_blob_failure_leaves_no_metadata(client, blob_store, meta_repo):
    blob_store.fail_on.add("put")

    with pytest.raises(UploadFailedError) as exc:
        await client.upload_document(b"data", None, "a.pdf")

    assert isinstance(exc.value.cause, StorageUnavailableError)
    assert meta_repo.rows == {}


async def test_insert_failure_removes_blob(client, blob_store, meta_repo):
    meta_repo.fail_on.add("insert")

    with pytest.raises(UploadFailedError):
        await client.upload_document(b"data", None, "a.pdf")

    assert blob_store.objects == {}


async def test_token_failure_rolls_back_row_and_blob(client, blob_store, meta_repo):
    blob_store.fail_on.add("sign")

    with pytest.raises(UploadFailedError):
        await client.upload_document(b"data", None, "a.pdf")

    assert meta_repo.rows == {}
    assert blob_store.objects == {}
    assert ("delete", 1) in meta_repo.calls


async def test_delete_removes_blob_then_row(client, blob_store, meta_repo):
    doc_id = await client.upload_document(b"data", None, "a.pdf")
    blob_name = meta_repo.rows[doc_id].blob_name
    blob_store.calls.clear()
    meta_repo.calls.clear()

    await client.delete_document(doc_id)

    assert blob_store.calls == [("remove", blob_name)]
    assert meta_repo.writes() == [("delete", doc_id)]
    assert await client.get_document(doc_id) is None


async def test_delete_is_idempotent(client):
    doc_id = await client.upload_document(b"data", None, "a.pdf")

    assert await client.delete_document(doc_id) is None
    assert await client.delete_document(doc_id) is None
    assert await client.delete_document(12345) is None


async def test_delete_keeps_row_when_blob_removal_fails(client, blob_store, meta_repo):
    doc_id = await client.upload_document(b"data", None, "a.pdf")
    blob_store.fail_on.add("remove")

    with pytest.raises(StorageUnavailableError):
        await client.delete_document(doc_id)

    assert doc_id in meta_repo.rows


async def test_download_link_round_trip(client, blob_store):
    doc_id = await client.upload_document(b"exact bytes \x00\xff", None, "blob.bin")

    url = await client.get_download_link(doc_id)

    assert blob_store.fetch(url) == b"exact bytes \x00\xff"
    assert "expires=3600" in url


async def test_download_link_for_missing_document(client):
    assert await client.get_download_link(42) is None


async def test_share_link_returns_token_triple(client, meta_repo):
    doc_id = await client.upload_document(b"data", None, "a.pdf")

    result = await client.get_share_link(doc_id, 2, 12)

    assert result.expires_at == T0 + timedelta(hours=2)
    assert result.share_link.expires_at == T0 + timedelta(hours=12)
    assert meta_repo.rows[doc_id].sas_token == result.token


async def test_share_link_for_missing_document(client):
    assert await client.get_share_link(999, 1, 1) is None


@pytest.mark.parametrize("valid_for, share_for", [(0, 1), (1, 0), (25, 1), (1, 25), (-1, 5), (True, 1), (1.5, 2)])
async def test_share_link_validates_hours_before_io(client, blob_store, meta_repo, valid_for, share_for):
    with pytest.raises(ValidationError):
        await client.get_share_link(1, valid_for, share_for)
    assert blob_store.calls == [] and meta_repo.calls == []


async def test_png_preview_returns_raw_bytes(client, rasterizer):
    doc_id = await client.upload_document(PNG, None, "pic.png")

    preview = await client.get_preview(doc_id)

    assert preview.preview_data == PNG
    assert preview.media_type == "image/png"
    assert rasterizer.calls == []


async def test_pdf_preview_is_rasterized(client, rasterizer):
    doc_id = await client.upload_document(b"%PDF-1.4", None, "doc.pdf")

    preview = await client.get_preview(doc_id)

    assert rasterizer.calls == [(b"%PDF-1.4", "application/pdf")]
    assert preview.file_type == "application/pdf"
    assert preview.media_type == "image/png"
    assert preview.preview_data == rasterizer.result


async def test_preview_conversion_failure_surfaces(client):
    client.rasterizer = FakeRasterizer(error=ConversionFailedError("corrupt"))
    doc_id = await client.upload_document(b"%PDF-broken", None, "doc.pdf")

    with pytest.raises(ConversionFailedError):
        await client.get_preview(doc_id)
    assert await client.get_document(doc_id) is not None


async def test_preview_unsupported_type(client):
    doc_id = await client.upload_document(b"plain", None, "notes.txt")
    with pytest.raises(UnsupportedPreviewError):
        await client.get_preview(doc_id)


async def test_preview_missing_document(client):
    assert await client.get_preview(7) is None


async def test_download_of_lost_blob_raises_not_found(client, blob_store, meta_repo):
    doc_id = await client.upload_document(b"data", None, "a.pdf")
    blob_store.objects.clear()

    with pytest.raises(ObjectNotFoundError):
        await client.download_document(doc_id)
    assert meta_repo.rows[doc_id].download_count == 0


async def test_concurrent_increments_lose_nothing(client):
    doc_id = await client.upload_document(b"data", None, "a.pdf")

    results = await asyncio.gather(*(client.increment_and_get_download_count(doc_id) for _ in range(50)))

    assert sorted(results) == list(range(1, 51))
    assert await client.get_download_count(doc_id) == 50


async def test_counter_sentinel_for_missing_document(client):
    assert await client.increment_and_get_download_count(404) == MISSING
    assert await client.get_download_count(404) == MISSING
    assert await client.download_document(404) is None


async def test_list_documents_newest_first_with_derived_type(client, clock, meta_repo):
    first = await client.upload_document(b"1", "old", "old.xlsx")
    clock.advance(minutes=1)
    second = await client.upload_document(b"2", "new", "new.pptx")
    meta_repo.rows[first] = meta_repo.rows[first].model_copy(update={"file_type": None})

    docs = await client.list_documents()

    assert [d.id for d in docs] == [second, first]
    assert docs[1].file_type == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


async def test_check_connections_reports_failures(client, blob_store):
    blob_store.fail_on.add("check")
    statuses = await client.check_connections()
    assert statuses["postgres"] == "ok"
    assert statuses["minio"].startswith("failed")
