"""Tests for the local-disk and S3 blob stores."""
import asyncio
import threading
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from archive.backends.local_blob import LocalBlobStore
from archive.backends.s3_blob import S3BlobStore
from archive.errors import BackendError


class TestLocalBlobStore:

    @pytest.mark.asyncio
    async def test_put_writes_file_and_sidecar(self, blob_store, tmp_path):
        url = await blob_store.put(
            b"hello",
            "memories/m1/1_photo.jpg",
            "image/jpeg",
            metadata={"originalName": "photo.jpg"},
        )
        assert url == "http://testserver/files/memories/m1/1_photo.jpg"

        target = tmp_path / "blobs" / "memories" / "m1" / "1_photo.jpg"
        assert target.read_bytes() == b"hello"
        assert blob_store.metadata("memories/m1/1_photo.jpg") == {
            "contentType": "image/jpeg",
            "originalName": "photo.jpg",
        }

    @pytest.mark.asyncio
    async def test_progress_reported_per_chunk(self, blob_store):
        reports = []
        data = b"x" * (LocalBlobStore.CHUNK_SIZE * 2 + 10)
        await blob_store.put(data, "a/b.bin", "application/pdf", on_progress=lambda t, n: reports.append((t, n)))
        assert len(reports) == 3
        assert reports[-1] == (len(data), len(data))
        assert [t for t, _ in reports] == sorted(t for t, _ in reports)

    @pytest.mark.asyncio
    async def test_empty_upload_reports_completion(self, blob_store):
        reports = []
        await blob_store.put(b"", "a/empty.pdf", "application/pdf", on_progress=lambda t, n: reports.append((t, n)))
        assert reports == [(0, 0)]

    @pytest.mark.asyncio
    async def test_delete(self, blob_store):
        await blob_store.put(b"data", "a/file.pdf", "application/pdf")
        assert await blob_store.delete("a/file.pdf") is True
        assert blob_store.resolve("a/file.pdf") is None
        assert await blob_store.delete("a/file.pdf") is False

    @pytest.mark.asyncio
    async def test_cancelled_put_leaves_nothing(self, blob_store):
        def cancel_after_first_chunk(transferred, total):
            task.cancel()

        data = b"x" * (3 * LocalBlobStore.CHUNK_SIZE)
        task = asyncio.ensure_future(
            blob_store.put(data, "memories/m1/1_x.png", "image/png", on_progress=cancel_after_first_chunk)
        )
        with pytest.raises(asyncio.CancelledError):
            await task

        assert [p for p in blob_store._root.rglob("*") if p.is_file()] == []
        assert blob_store.resolve("memories/m1/1_x.png") is None

    @pytest.mark.asyncio
    async def test_failed_put_leaves_nothing(self, blob_store):
        def broken_listener(transferred, total):
            raise RuntimeError("listener failed")

        with pytest.raises(RuntimeError):
            await blob_store.put(b"abc", "memories/m1/1_y.png", "image/png", on_progress=broken_listener)
        assert [p for p in blob_store._root.rglob("*") if p.is_file()] == []

    def test_path_traversal_refused(self, blob_store):
        assert blob_store.resolve("../../etc/passwd") is None

    @pytest.mark.asyncio
    async def test_sidecar_not_served(self, blob_store):
        await blob_store.put(b"data", "a/file.pdf", "application/pdf")
        assert blob_store.resolve("a/file.pdf.meta.json") is None


class TestS3BlobStore:

    def _store(self, client):
        return S3BlobStore(bucket="archive-bucket", region="us-west-2", client=client)

    @pytest.mark.asyncio
    async def test_put_uploads_with_metadata(self):
        client = MagicMock()

        def fake_upload(fileobj, bucket, key, ExtraArgs=None, Callback=None):
            data = fileobj.read()
            Callback(len(data))

        client.upload_fileobj.side_effect = fake_upload
        reports = []

        url = await self._store(client).put(
            b"abcdef",
            "memories/m1/1_a.png",
            "image/png",
            metadata={"memoryId": "m1"},
            on_progress=lambda t, n: reports.append((t, n)),
        )

        assert url == "https://archive-bucket.s3.us-west-2.amazonaws.com/memories/m1/1_a.png"
        _, kwargs = client.upload_fileobj.call_args
        assert kwargs["ExtraArgs"] == {"ContentType": "image/png", "Metadata": {"memoryId": "m1"}}
        assert reports[-1] == (6, 6)

    def test_public_base_url(self):
        store = S3BlobStore(bucket="b", public_base_url="https://cdn.example.com/", client=MagicMock())
        assert store.url_for("memories/m 1/x.jpg") == "https://cdn.example.com/memories/m%201/x.jpg"

    @pytest.mark.asyncio
    async def test_put_client_error_becomes_backend_error(self):
        client = MagicMock()
        client.upload_fileobj.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        with pytest.raises(BackendError):
            await self._store(client).put(b"x", "k", "image/png")

    @pytest.mark.asyncio
    async def test_delete_missing_returns_false(self):
        client = MagicMock()
        client.head_object.side_effect = ClientError({"Error": {"Code": "404", "Message": "nf"}}, "HeadObject")
        assert await self._store(client).delete("k") is False
        client.delete_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_existing(self):
        client = MagicMock()
        assert await self._store(client).delete("k") is True
        client.delete_object.assert_called_once_with(Bucket="archive-bucket", Key="k")

    def test_bucket_required(self):
        with pytest.raises(ValueError):
            S3BlobStore(bucket="", client=MagicMock())

    @pytest.mark.asyncio
    async def test_abandoned_upload_is_deleted_when_it_lands(self):
        client = MagicMock()
        started = threading.Event()
        release = threading.Event()
        deleted = threading.Event()

        def slow_upload(fileobj, bucket, key, ExtraArgs=None, Callback=None):
            started.set()
            release.wait(5)

        client.upload_fileobj.side_effect = slow_upload
        client.delete_object.side_effect = lambda **kwargs: deleted.set()

        task = asyncio.ensure_future(self._store(client).put(b"abc", "memories/m1/1_a.png", "image/png"))
        assert await asyncio.to_thread(started.wait, 5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        release.set()
        assert await asyncio.to_thread(deleted.wait, 5)
        client.delete_object.assert_called_once_with(Bucket="archive-bucket", Key="memories/m1/1_a.png")
