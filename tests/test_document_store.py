import base64

import pytest

from capms.core.document_store import MAX_DOCUMENT_BYTES, MinioDocumentStore, decode_data_uri, discard_quietly
from capms.services.errors import DependencyError, ValidationError

from tests.factories import FakeDocumentStore, PDF_DOC


class RecordingMinio:
    """Just enough of the Minio client surface for MinioDocumentStore."""

    def __init__(self, fail=False):
        self.fail = fail
        self.buckets = set()
        self.objects = {}

    def bucket_exists(self, bucket):
        if self.fail:
            raise OSError("connection refused")
        return bucket in self.buckets

    def make_bucket(self, bucket):
        self.buckets.add(bucket)

    def put_object(self, bucket, name, data, length, content_type):
        self.objects[(bucket, name)] = (data.read(), content_type)

    def presigned_get_object(self, bucket, name, expires):
        return f"https://minio.test/{bucket}/{name}?signed"

    def remove_object(self, bucket, name):
        self.objects.pop((bucket, name), None)


def test_decode_data_uri():
    payload, content_type = decode_data_uri(PDF_DOC)
    assert payload.startswith(b"%PDF")
    assert content_type == "application/pdf"


def test_decode_bare_base64():
    payload, content_type = decode_data_uri(base64.b64encode(b"hello").decode())
    assert payload == b"hello"
    assert content_type == "application/octet-stream"


@pytest.mark.parametrize("bad", ["", "   ", "data:image/png,abc", "data:image/png;base64,***"])
def test_decode_rejects_bad_input(bad):
    with pytest.raises(ValidationError):
        decode_data_uri(bad)


def test_decode_rejects_oversized_documents():
    big = base64.b64encode(b"x" * (MAX_DOCUMENT_BYTES + 1)).decode()
    with pytest.raises(ValidationError):
        decode_data_uri(big)


async def test_minio_store_creates_bucket_and_public_url():
    client = RecordingMinio()
    store = MinioDocumentStore(client, "docs", public_base="https://cdn.test/")

    doc = await store.store(PDF_DOC)

    assert "docs" in client.buckets
    assert doc.storage_id.startswith("activity_documents/")
    assert doc.storage_id.endswith(".pdf")
    assert doc.url == f"https://cdn.test/docs/{doc.storage_id}"
    assert client.objects[("docs", doc.storage_id)][1] == "application/pdf"

    await store.delete(doc.storage_id)
    assert client.objects == {}


async def test_minio_store_falls_back_to_presigned_url():
    store = MinioDocumentStore(RecordingMinio(), "docs")
    doc = await store.store(PDF_DOC)
    assert doc.url.endswith("?signed")


async def test_minio_outage_is_a_dependency_error():
    store = MinioDocumentStore(RecordingMinio(fail=True), "docs")
    with pytest.raises(DependencyError):
        await store.store(PDF_DOC)


async def test_discard_quietly_swallows_store_failures():
    store = FakeDocumentStore()
    store.fail_delete = True
    await discard_quietly(store, "activity_documents/a")
    await discard_quietly(store, None)
    assert store.deleted == []
