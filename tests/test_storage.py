import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from cvintake.errors import StorageError
from cvintake.models.submission import Submission
from cvintake.services.blob_storage import HttpBlobStorage, LocalBlobStorage
from cvintake.services.storage import JsonSubmissionStore


def _submission(first="Ana", minutes_ago=0, user_id="u1"):
    return Submission(
        first_name=first,
        last_name="Li",
        phone="+1 555 123 4567",
        user_id=user_id,
        submitted_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
    )


def test_create_assigns_id_and_records_are_newest_first(tmp_path):
    store = JsonSubmissionStore(tmp_path)

    async def run():
        old = await store.create(_submission("Old", minutes_ago=10))
        new = await store.create(_submission("New"))
        recent = await store.recent_records(10)
        count = await store.count()
        return old, new, recent, count

    old, new, recent, count = asyncio.run(run())
    assert old.success and new.success
    assert old.id and new.id and old.id != new.id
    assert [s.first_name for s in recent.data] == ["New", "Old"]
    assert recent.data[0].id == new.id
    assert count.count == 2


def test_recent_records_respects_limit(tmp_path):
    store = JsonSubmissionStore(tmp_path)

    async def run():
        for i in range(3):
            await store.create(_submission(f"N{i}", minutes_ago=i))
        return await store.recent_records(2)

    result = asyncio.run(run())
    assert [s.first_name for s in result.data] == ["N0", "N1"]


def test_failures_come_back_as_tagged_results(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("occupied")
    store = JsonSubmissionStore(blocker)

    result = asyncio.run(store.create(_submission()))
    assert result.success is False
    assert result.message == "Failed to submit form. Please try again."


def test_empty_store_counts_zero(tmp_path):
    store = JsonSubmissionStore(tmp_path / "missing")
    result = asyncio.run(store.count())
    assert result.success and result.count == 0


def test_submission_timestamp_defaults():
    s = _submission()
    assert s.timestamp == int(s.submitted_at.timestamp() * 1000)
    assert s.preferred_language == "english"


def test_http_storage_streams_and_reports_progress():
    received = {}

    def handler(request: httpx.Request) -> httpx.Response:
        received["body"] = request.content
        received["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"url": "https://cdn.test/cvs/1_cv.pdf"})

    storage = HttpBlobStorage(
        "https://storage.test/bucket", token="secret", chunk_size=4,
        transport=httpx.MockTransport(handler),
    )
    seen = []
    url = asyncio.run(storage.upload(b"0123456789", "cvs/1_cv.pdf", seen.append))

    assert url == "https://cdn.test/cvs/1_cv.pdf"
    assert received["body"] == b"0123456789"
    assert received["auth"] == "Bearer secret"
    assert seen == [40, 80, 100]


def test_http_storage_falls_back_to_endpoint_url():
    storage = HttpBlobStorage(
        "https://storage.test/bucket",
        transport=httpx.MockTransport(lambda request: httpx.Response(201)),
    )
    url = asyncio.run(storage.upload(b"abc", "cvs/1_cv.pdf", lambda p: None))
    assert url == "https://storage.test/bucket/cvs/1_cv.pdf"


def test_http_storage_raises_storage_error_on_failure():
    storage = HttpBlobStorage(
        "https://storage.test/bucket",
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )
    with pytest.raises(StorageError):
        asyncio.run(storage.upload(b"abc", "cvs/1_cv.pdf", lambda p: None))


def test_local_storage_reports_progress(tmp_path):
    storage = LocalBlobStorage(tmp_path, "https://files.test/", chunk_size=3)
    seen = []
    url = asyncio.run(storage.upload(b"abcdefg", "cvs/x.pdf", seen.append))

    assert url == "https://files.test/cvs/x.pdf"
    assert seen == [43, 86, 100]


def test_unreadable_file_is_skipped_not_fatal(tmp_path):
    store = JsonSubmissionStore(tmp_path)
    asyncio.run(store.create(_submission("Ana")))
    (tmp_path / "zz_broken.json").write_text("{", encoding="utf-8")
    (tmp_path / "zz_invalid.json").write_text('{"first_name": "NoPhone"}', encoding="utf-8")

    result = asyncio.run(store.recent_records())

    assert result.success
    assert [s.first_name for s in result.data] == ["Ana"]


def test_submitted_at_is_optional_until_defaulted():
    submission = Submission(first_name="Ana", last_name="Li", phone="1234567", submitted_at=None)
    assert submission.submitted_at is not None
    assert submission.timestamp == int(submission.submitted_at.timestamp() * 1000)
