"""Tests for blob store back-ends, classification and staging."""
import base64
import re
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from app.chat.schemas import ChatMessageType, message_type_for
from app.config import AppSettings
from app.main import create_app
from app.storage.blob_store import (
    ResourceHint,
    ResourceKind,
    absolute_url,
    classify_resource,
    make_object_key,
    select_resource_hint,
)
from app.storage.errors import UploadFailedError
from app.storage.factory import create_blob_store
from app.storage.local import LocalBlobStore
from app.storage.s3 import S3BlobStore
from app.storage.staging import stage_and_upload, staged_file

from conftest import FakeBlobStore


class TestClassification:
    def test_pdf_is_raw(self):
        assert select_resource_hint("application/pdf") == ResourceHint.RAW

    @pytest.mark.parametrize("mime", ["image/png", "video/mp4", "text/plain", "application/zip"])
    def test_everything_else_is_auto(self, mime):
        assert select_resource_hint(mime) == ResourceHint.AUTO

    @pytest.mark.parametrize(
        "mime,hint,kind",
        [
            ("image/png", ResourceHint.AUTO, ResourceKind.IMAGE),
            ("video/webm", ResourceHint.AUTO, ResourceKind.VIDEO),
            ("audio/mpeg", ResourceHint.AUTO, ResourceKind.VIDEO),
            ("text/plain", ResourceHint.AUTO, ResourceKind.RAW),
            ("image/png", ResourceHint.RAW, ResourceKind.RAW),
        ],
    )
    def test_resource_kind(self, mime, hint, kind):
        assert classify_resource(mime, hint) == kind

    @pytest.mark.parametrize(
        "mime,expected",
        [
            ("image/gif", ChatMessageType.IMAGE),
            ("video/quicktime", ChatMessageType.VIDEO),
            ("audio/ogg", ChatMessageType.FILE),
            ("application/pdf", ChatMessageType.FILE),
        ],
    )
    def test_chat_message_type(self, mime, expected):
        assert message_type_for(mime) == expected

    def test_object_keys_are_unique_and_keep_extension(self):
        keys = {make_object_key("uploads", "Photo.JPG") for _ in range(50)}
        assert len(keys) == 50
        assert all(k.startswith("uploads/") and k.endswith(".jpg") for k in keys)

    @pytest.mark.parametrize("filename", ["a.p#g", "b.pn?g", "c.p g", "d.png%2f", "noext"])
    def test_unsafe_or_missing_suffix_is_dropped(self, filename):
        key = make_object_key("uploads", filename)
        assert re.fullmatch(r"uploads/[0-9a-f]{32}", key)

    @pytest.mark.parametrize(
        "url,base,expected",
        [
            ("/blobs/a.png", "http://host/", "http://host/blobs/a.png"),
            ("/blobs/a.png", None, "/blobs/a.png"),
            ("https://cdn/a.png", "http://host", "https://cdn/a.png"),
        ],
    )
    def test_absolute_url(self, url, base, expected):
        assert absolute_url(url, base) == expected


class TestStaging:
    def test_staged_file_is_removed(self, tmp_path):
        with staged_file(str(tmp_path), b"data", "../../etc/passwd") as path:
            assert path.read_bytes() == b"data"
            assert path.parent == tmp_path
            assert path.name.endswith("-passwd")
        assert not path.exists()

    def test_staged_file_removed_when_body_raises(self, tmp_path):
        with pytest.raises(RuntimeError):
            with staged_file(str(tmp_path), b"data", "a.txt") as path:
                raise RuntimeError("boom")
        assert not path.exists()

    def test_concurrent_stages_do_not_collide(self, tmp_path):
        with staged_file(str(tmp_path), b"1", "same.txt") as p1, \
             staged_file(str(tmp_path), b"2", "same.txt") as p2:
            assert p1 != p2
            assert p1.read_bytes() == b"1"
            assert p2.read_bytes() == b"2"

    def test_cleanup_failure_is_logged_not_raised(self, tmp_path, caplog):
        with patch.object(Path, "unlink", side_effect=PermissionError("denied")):
            with staged_file(str(tmp_path), b"data", "a.txt"):
                pass
        assert "Failed to remove staged file" in caplog.text

    @pytest.mark.asyncio
    async def test_stage_and_upload_wraps_errors(self, tmp_path):
        store = FakeBlobStore(fail_on={"a.png"})
        with pytest.raises(UploadFailedError) as excinfo:
            await stage_and_upload(
                store, tmp_dir=str(tmp_path), content=b"x",
                filename="a.png", mime_type="image/png", folder="uploads",
            )
        assert excinfo.value.filename == "a.png"
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert list(tmp_path.iterdir()) == []


class TestLocalBlobStore:
    @pytest.mark.asyncio
    async def test_upload_copies_file(self, tmp_path):
        store = LocalBlobStore(str(tmp_path / "blobs"), public_base_url="http://host/")
        source = tmp_path / "src.png"
        source.write_bytes(b"png")

        stored = await store.upload(
            source, hint=ResourceHint.AUTO, folder="uploads",
            filename="cat.png", content_type="image/png",
        )

        assert stored.kind == ResourceKind.IMAGE
        assert stored.url == f"http://host/blobs/{stored.key}"
        assert store.resolve_key(stored.key).read_bytes() == b"png"

    def test_resolve_key_rejects_escape(self, tmp_path):
        store = LocalBlobStore(str(tmp_path / "blobs"))
        (tmp_path / "secret.txt").write_text("x")
        assert store.resolve_key("../secret.txt") is None
        assert store.resolve_key("uploads/missing.png") is None

    def test_blob_route_serves_local_uploads(self, tmp_path):
        config = AppSettings(
            uploads={"tmp_dir": str(tmp_path / "tmp")},
            blob_store={"local_dir": str(tmp_path / "blobs")},
        )
        client = TestClient(create_app(config=config))

        response = client.post(
            "/upload", files=[("files", ("note.txt", b"hello", "text/plain"))]
        )
        assert response.status_code == 200

        folder_id = response.json()["link"].rsplit("/", 1)[-1]
        record = client.app.state.link_registry.resolve(folder_id).record
        blob_url = record.files[0].url
        # No public_base_url configured: the request origin is used.
        assert blob_url.startswith("http://testserver/blobs/uploads/")

        blob = client.get(blob_url)
        assert blob.status_code == 200
        assert blob.content == b"hello"
        assert client.get("/blobs/uploads/nothing.txt").status_code == 404

    def test_blob_route_404_for_other_backends(self, api_client):
        assert api_client.get("/blobs/uploads/a.png").status_code == 404


class TestS3BlobStore:
    def test_requires_bucket(self):
        with pytest.raises(ValueError):
            S3BlobStore(bucket="")

    def test_upload_calls_boto3(self, tmp_path):
        source = tmp_path / "doc.pdf"
        source.write_bytes(b"%PDF")
        fake_client = MagicMock()

        with patch("app.storage.s3.boto3.client", return_value=fake_client) as factory:
            store = S3BlobStore(
                bucket="drops",
                access_key="AKIA",
                access_secret="shh",
                account_id="acct",
                endpoint_url="https://{account_id}.r2.example.com",
            )
            stored = store.upload_sync(
                source, hint=ResourceHint.RAW, folder="uploads",
                filename="doc.pdf", content_type="application/pdf",
            )

        factory.assert_called_once_with(
            "s3",
            region_name="us-east-1",
            aws_access_key_id="AKIA",
            aws_secret_access_key="shh",
            endpoint_url="https://acct.r2.example.com",
        )
        args, kwargs = fake_client.upload_file.call_args
        assert args == (str(source), "drops", stored.key)
        assert kwargs["ExtraArgs"]["ContentType"] == "application/pdf"
        assert kwargs["ExtraArgs"]["Metadata"] == {"resource-hint": "raw"}
        assert stored.kind == ResourceKind.RAW
        assert stored.url == f"https://acct.r2.example.com/drops/{stored.key}"

    @pytest.mark.parametrize(
        "kwargs,prefix",
        [
            ({"public_base_url": "https://cdn.example.com/"}, "https://cdn.example.com/"),
            ({"region_name": "eu-west-1"}, "https://drops.s3.eu-west-1.amazonaws.com/"),
        ],
    )
    def test_public_url(self, kwargs, prefix):
        store = S3BlobStore(bucket="drops", **kwargs)
        assert store.public_url("uploads/a.png") == f"{prefix}uploads/a.png"


class TestFactory:
    def test_local_backend(self, tmp_path):
        config = AppSettings(blob_store={"local_dir": str(tmp_path)})
        assert isinstance(create_blob_store(config), LocalBlobStore)

    def test_s3_backend(self):
        config = AppSettings(
            blob_store={"backend": "s3", "bucket": "drops"},
            secrets={"blob_store": {"access_key": "k", "access_secret": "s"}},
        )
        assert isinstance(create_blob_store(config), S3BlobStore)


def test_chat_file_url_is_absolute_without_public_base_url(tmp_path):
    config = AppSettings(
        uploads={"tmp_dir": str(tmp_path / "tmp")},
        blob_store={"local_dir": str(tmp_path / "blobs")},
    )
    client = TestClient(create_app(config=config))

    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json()["event"] == "connected"
        ws.send_json({
            "event": "send_file",
            "data": {
                "name": "cat.png",
                "mimetype": "image/png",
                "buffer": base64.b64encode(b"meow").decode(),
                "room": "r1",
            },
        })
        echo = ws.receive_json()

    url = echo["data"]["message"]
    assert url.startswith("http://testserver/blobs/chat_uploads/")
    assert client.get(url).content == b"meow"
