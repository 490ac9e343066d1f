import asyncio
import re
import time
from pathlib import Path

import pytest

from tests.fakes import FakeObjectStore, RecordingSleep, factory_for
from zipdrop.errors import CredentialsError, OperationError, StoreError
from zipdrop.uploader import (
    CONNECTION_FAILED_MESSAGE,
    INVALID_CREDENTIALS_MESSAGE,
    TIMEOUT_MESSAGE,
    StorageUploader,
    build_object_key,
    build_public_url,
    content_type_for,
    friendly_error,
    is_transient_error,
    sanitize_name
)


def _uploader(store, sleep=None, seen=None):
    return StorageUploader(store_factory=factory_for(store, seen), sleep=sleep or RecordingSleep())


@pytest.fixture
def artifact(make_file):
    return make_file("My Photo (1).webp", b"RIFF....WEBPVP8 " + b"\x00" * 512)


# Key, content type and URL helpers

def test_sanitize_name_replaces_unsafe_characters():
    assert sanitize_name("My Photo (1)") == "My_Photo__1_"
    assert sanitize_name("already-safe_name") == "already-safe_name"
    assert sanitize_name("a.b/c\\d") == "a_b_c_d"


def test_object_key_format():
    key = build_object_key(Path("/tmp/out/My Photo (1)_ab12cd34.webp"), unique_id="deadbeef")
    assert key == "u/deadbeef_My_Photo__1__ab12cd34.webp"


def test_object_key_defaults():
    key = build_object_key(Path("/tmp/out/blob"))
    assert re.fullmatch(r"u/[0-9a-f]{8}_blob\.bin", key)


@pytest.mark.parametrize("ext,expected", [
    ("webp", "image/webp"),
    ("jpg", "image/jpeg"),
    ("jpeg", "image/jpeg"),
    ("png", "image/png"),
    ("gif", "image/gif"),
    ("pdf", "application/pdf"),
    ("zip", "application/zip"),
    ("mp4", "video/mp4"),
    ("mov", "video/quicktime"),
    ("txt", "application/octet-stream"),
    ("", "application/octet-stream"),
])
def test_content_type_table(ext, expected):
    assert content_type_for(ext) == expected


def test_public_url_joins_with_single_slash():
    assert build_public_url("https://cdn.example.com/", "u/x.zip") == "https://cdn.example.com/u/x.zip"
    assert build_public_url("https://cdn.example.com", "u/x.zip") == "https://cdn.example.com/u/x.zip"
    assert build_public_url("https://cdn.example.com///", "u/x.zip") == "https://cdn.example.com/u/x.zip"


def test_transient_error_classification():
    assert is_transient_error("Request TIMEOUT while sending")
    assert is_transient_error("connection reset by peer")
    assert is_transient_error("Service temporarily unavailable")
    assert is_transient_error("got 503 from upstream")
    assert is_transient_error("network error: could not connect")
    assert not is_transient_error("AccessDenied: signature mismatch")
    assert not is_transient_error("NoSuchBucket")


def test_friendly_error_categories():
    assert friendly_error("Read timed out") == TIMEOUT_MESSAGE
    assert friendly_error("timeout: connect") == TIMEOUT_MESSAGE
    assert friendly_error("Connection refused (os error 61)") == CONNECTION_FAILED_MESSAGE
    assert friendly_error("network error: dns failure") == CONNECTION_FAILED_MESSAGE
    assert friendly_error("SignatureDoesNotMatch: the request signature...") == INVALID_CREDENTIALS_MESSAGE
    assert friendly_error("NoSuchBucket") == INVALID_CREDENTIALS_MESSAGE


# upload

def test_upload_success(artifact, storage_config):
    store = FakeObjectStore(put=[200])
    seen = []

    result = asyncio.run(_uploader(store, seen=seen).upload(artifact, storage_config))

    assert seen == [storage_config]
    key, data, content_type = store.puts[0]
    assert re.fullmatch(r"u/[0-9a-f]{8}_My_Photo__1_\.webp", key)
    assert data == artifact.read_bytes()
    assert content_type == "image/webp"
    assert result.key == key
    assert result.url == f"https://cdn.example.com/{key}"
    assert result.size == artifact.stat().st_size


def test_upload_retries_retryable_status_with_backoff(artifact, storage_config):
    store = FakeObjectStore(put=[503, 503, 200])
    sleep = RecordingSleep()

    result = asyncio.run(_uploader(store, sleep).upload(artifact, storage_config))

    assert len(store.puts) == 3
    assert sleep.delays == [1.0, 2.0]
    assert sleep.total >= 3.0
    assert len({key for key, _, _ in store.puts}) == 1
    assert result.url.endswith(store.puts[0][0])


def test_upload_backoff_waits_in_real_time(artifact, storage_config):
    store = FakeObjectStore(put=[503, 503, 200])
    uploader = StorageUploader(store_factory=factory_for(store))

    started = time.monotonic()
    asyncio.run(uploader.upload(artifact, storage_config))
    elapsed = time.monotonic() - started

    assert elapsed >= 3.0


@pytest.mark.parametrize("status", [502, 504])
def test_upload_gives_up_after_three_attempts(artifact, storage_config, status):
    store = FakeObjectStore(put=[status])
    sleep = RecordingSleep()

    with pytest.raises(OperationError) as exc:
        asyncio.run(_uploader(store, sleep).upload(artifact, storage_config))

    assert len(store.puts) == 3
    assert sleep.delays == [1.0, 2.0]
    assert exc.value.message == f"R2 upload failed with status: {status}"


@pytest.mark.parametrize("status", [500, 403, 404, 201])
def test_upload_non_retryable_status_fails_after_one_attempt(artifact, storage_config, status):
    store = FakeObjectStore(put=[status, 200])
    sleep = RecordingSleep()

    with pytest.raises(OperationError) as exc:
        asyncio.run(_uploader(store, sleep).upload(artifact, storage_config))

    assert len(store.puts) == 1
    assert sleep.delays == []
    assert str(status) in exc.value.message


def test_upload_retries_transient_transport_error(artifact, storage_config):
    store = FakeObjectStore(put=[StoreError("network error: connection reset"), 200])
    sleep = RecordingSleep()

    result = asyncio.run(_uploader(store, sleep).upload(artifact, storage_config))

    assert len(store.puts) == 2
    assert sleep.delays == [1.0]
    assert result.size == artifact.stat().st_size


def test_upload_does_not_retry_permanent_transport_error(artifact, storage_config):
    store = FakeObjectStore(put=[StoreError("Unable to locate credentials"), 200])
    sleep = RecordingSleep()

    with pytest.raises(OperationError) as exc:
        asyncio.run(_uploader(store, sleep).upload(artifact, storage_config))

    assert len(store.puts) == 1
    assert sleep.delays == []
    assert exc.value.message == "Failed to upload to R2: Unable to locate credentials"


def test_upload_missing_file(temp_dir, storage_config):
    store = FakeObjectStore()

    with pytest.raises(OperationError, match="Failed to read file for upload"):
        asyncio.run(_uploader(store).upload(temp_dir / "gone.zip", storage_config))

    assert store.puts == []


def test_upload_keeps_archive_content_type(make_file, storage_config):
    store = FakeObjectStore()
    archive = make_file("archive_1234abcd.zip", b"PK\x05\x06" + b"\x00" * 18)

    result = asyncio.run(_uploader(store).upload(archive, storage_config))

    assert store.puts[0][2] == "application/zip"
    assert re.fullmatch(r"u/[0-9a-f]{8}_archive_1234abcd\.zip", result.key)


# validate_credentials

def test_validate_credentials_success_cleans_up(storage_config):
    store = FakeObjectStore(put=[200], delete=[204])

    asyncio.run(_uploader(store).validate_credentials(storage_config))

    assert store.puts == [(".zipdrop-connection-test", b"test", "text/plain")]
    assert store.deletes == [".zipdrop-connection-test"]


def test_validate_credentials_forbidden_is_generic(storage_config):
    store = FakeObjectStore(put=[403])

    with pytest.raises(CredentialsError) as exc:
        asyncio.run(_uploader(store).validate_credentials(storage_config))

    assert exc.value.message == INVALID_CREDENTIALS_MESSAGE
    assert store.deletes == [".zipdrop-connection-test"]


def test_validate_credentials_hides_provider_detail(storage_config):
    store = FakeObjectStore(put=[StoreError("SignatureDoesNotMatch: The request signature we calculated...")])

    with pytest.raises(CredentialsError) as exc:
        asyncio.run(_uploader(store).validate_credentials(storage_config))

    assert exc.value.message == INVALID_CREDENTIALS_MESSAGE
    assert "Signature" not in str(exc.value)


@pytest.mark.parametrize("raw,expected", [
    ("timeout: Connect timeout on endpoint URL", TIMEOUT_MESSAGE),
    ("operation timed out", TIMEOUT_MESSAGE),
    ("Connection refused", CONNECTION_FAILED_MESSAGE),
    ("network error: Could not connect to the endpoint URL", CONNECTION_FAILED_MESSAGE),
])
def test_validate_credentials_reports_connectivity(storage_config, raw, expected):
    store = FakeObjectStore(put=[StoreError(raw)])

    with pytest.raises(CredentialsError) as exc:
        asyncio.run(_uploader(store).validate_credentials(storage_config))

    assert exc.value.message == expected


def test_validate_credentials_ignores_cleanup_failure(storage_config):
    store = FakeObjectStore(put=[200], delete=[StoreError("network error: gone")])

    asyncio.run(_uploader(store).validate_credentials(storage_config))

    assert store.deletes == [".zipdrop-connection-test"]


def test_validate_credentials_store_factory_failure(storage_config):
    def broken_factory(config):
        raise ValueError("Invalid endpoint: https://.r2.cloudflarestorage.com")

    uploader = StorageUploader(store_factory=broken_factory, sleep=RecordingSleep())

    with pytest.raises(CredentialsError) as exc:
        asyncio.run(uploader.validate_credentials(storage_config))

    assert exc.value.message == INVALID_CREDENTIALS_MESSAGE


# delete / exists

def test_delete_single_attempt(storage_config):
    store = FakeObjectStore(delete=[204])

    asyncio.run(_uploader(store).delete("u/abc_file.zip", storage_config))

    assert store.deletes == ["u/abc_file.zip"]


def test_delete_propagates_failure_without_retry(storage_config):
    store = FakeObjectStore(delete=[StoreError("network error: reset"), 204])
    sleep = RecordingSleep()

    with pytest.raises(OperationError, match="Failed to delete from R2"):
        asyncio.run(_uploader(store, sleep).delete("u/abc_file.zip", storage_config))

    assert store.deletes == ["u/abc_file.zip"]
    assert sleep.delays == []


def test_delete_rejected_status_raises(storage_config):
    store = FakeObjectStore(delete=[403])

    with pytest.raises(OperationError, match="status 403"):
        asyncio.run(_uploader(store).delete("u/abc_file.zip", storage_config))


def test_exists(storage_config):
    store = FakeObjectStore(head=[200, 404, 500])
    uploader = _uploader(store)

    assert asyncio.run(uploader.exists("u/a", storage_config)) is True
    assert asyncio.run(uploader.exists("u/b", storage_config)) is False
    with pytest.raises(OperationError):
        asyncio.run(uploader.exists("u/c", storage_config))
