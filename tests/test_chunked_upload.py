from __future__ import annotations

from typing import Any, List

import pytest

import chunked_upload
from chunked_upload import (
    UploadOptions,
    get_upload_status,
    plan_chunks,
    smart_upload,
    upload_file_in_chunks,
    upload_file_with_progress,
)
from errors import UploadError
from models import UploadResult

from conftest import Call, FakeResponse, FakeSession

MB = 1024 * 1024
UPLOAD_URL = "http://api.test/api/upload"


def upload_server(file_size: int, fail_chunks: Any = (), flaky_chunks: Any = ()) -> FakeSession:
    """Fake upload endpoint. ``flaky_chunks`` fail on their first attempt only."""
    failed_once = set()

    def handler(call: Call) -> FakeResponse:
        if call.url.endswith("/init"):
            return FakeResponse(payload={"success": True, "sessionId": "sess-1"})
        if call.url.endswith("/chunk"):
            number = int(call.data["chunkNumber"])
            if number in fail_chunks:
                return FakeResponse(500, {"message": "disk full"}, reason="Internal Server Error")
            if number in flaky_chunks and number not in failed_once:
                failed_once.add(number)
                return FakeResponse(502, reason="Bad Gateway")
            return FakeResponse(payload={"success": True, "chunkNumber": number})
        if call.url.endswith("/complete"):
            return FakeResponse(
                payload={
                    "success": True,
                    "fileName": "1700000000_report.pdf",
                    "originalName": "report.pdf",
                    "filePath": "/uploads/books/1700000000_report.pdf",
                    "fileSize": file_size,
                }
            )
        if call.url.endswith("/cleanup"):
            return FakeResponse(payload={"success": True})
        return FakeResponse(404, {"message": "unknown route"})

    return FakeSession(handler)


def test_plan_chunks_sizes() -> None:
    chunks = plan_chunks(int(2.5 * MB), MB)
    assert [c.size for c in chunks] == [MB, MB, MB // 2]
    assert [c.number for c in chunks] == [1, 2, 3]
    assert all(c.total == 3 for c in chunks)
    assert chunks[1].start == MB and chunks[-1].end == int(2.5 * MB)


def test_plan_chunks_exact_multiple() -> None:
    chunks = plan_chunks(4 * 10, 10)
    assert len(chunks) == 4
    assert chunks[-1].size == 10


def test_plan_chunks_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError):
        plan_chunks(100, 0)


def test_upload_sends_three_chunks_and_reports_progress() -> None:
    size = int(2.5 * MB)
    payload = bytes(range(256)) * (size // 256) + b"x" * (size % 256)
    session = upload_server(size)
    progress: List[float] = []

    result = upload_file_in_chunks(
        payload,
        UPLOAD_URL,
        UploadOptions(chunk_size=MB),
        progress.append,
        headers={"Authorization": "Bearer tok"},
        file_name="report.pdf",
        session=session,
    )

    assert isinstance(result, UploadResult)
    assert result.file_path == "/uploads/books/1700000000_report.pdf"
    assert result.file_size == size

    init = session.calls_to("/init")[0]
    assert init.json["fileName"] == "report.pdf"
    assert init.json["fileSize"] == size
    assert init.json["totalChunks"] == 3
    assert init.json["mimeType"] == "application/pdf"
    assert init.json["uploadId"].startswith("upload_")

    chunk_calls = session.calls_to("/chunk")
    assert len(chunk_calls) == 3
    assert [len(c.files["chunk"][1]) for c in chunk_calls] == [MB, MB, MB // 2]
    assert b"".join(c.files["chunk"][1] for c in chunk_calls) == payload
    assert [c.data["chunkNumber"] for c in chunk_calls] == ["1", "2", "3"]
    assert all(c.data["totalChunks"] == "3" and c.data["sessionId"] == "sess-1" for c in chunk_calls)
    assert all(c.headers["Authorization"] == "Bearer tok" for c in session.calls)

    complete = session.calls_to("/complete")[0]
    assert complete.json == {"sessionId": "sess-1", "uploadedChunks": [1, 2, 3], "fileName": "report.pdf", "fileSize": size}

    assert progress == pytest.approx([1 / 3, 2 / 3, 1.0])
    assert session.calls_to("/cleanup") == []


def test_progress_can_stop_below_one() -> None:
    session = upload_server(30)
    progress: List[float] = []
    upload_file_in_chunks(b"a" * 30, UPLOAD_URL, UploadOptions(chunk_size=10, progress_max=0.8), progress.append, session=session)
    assert progress == pytest.approx([0.8 / 3, 1.6 / 3, 0.8])


def test_failed_chunk_aborts_and_cleans_up() -> None:
    session = upload_server(30, fail_chunks={2})
    progress: List[float] = []

    with pytest.raises(UploadError) as excinfo:
        upload_file_in_chunks(b"a" * 30, UPLOAD_URL, UploadOptions(chunk_size=10), progress.append, session=session)

    assert excinfo.value.status_code == 500
    assert [c.data["chunkNumber"] for c in session.calls_to("/chunk")] == ["1", "2"]
    assert session.calls_to("/complete") == []
    cleanup = session.calls_to("/cleanup")[0]
    assert cleanup.json["sessionId"] == "sess-1"
    assert cleanup.json["uploadId"].startswith("upload_")
    assert progress == pytest.approx([1 / 3])


def test_chunk_retry_when_enabled() -> None:
    session = upload_server(30, flaky_chunks={2})
    upload_file_in_chunks(
        b"a" * 30, UPLOAD_URL, UploadOptions(chunk_size=10, retry_attempts=2, retry_delay=0), session=session
    )
    assert [c.data["chunkNumber"] for c in session.calls_to("/chunk")] == ["1", "2", "2", "3"]


def test_no_retry_by_default() -> None:
    session = upload_server(30, flaky_chunks={1})
    with pytest.raises(UploadError):
        upload_file_in_chunks(b"a" * 30, UPLOAD_URL, UploadOptions(chunk_size=10), session=session)
    assert len(session.calls_to("/chunk")) == 1


def test_init_failure_raises_upload_error() -> None:
    session = FakeSession(lambda call: FakeResponse(401, {"message": "Not authorized"}))
    with pytest.raises(UploadError) as excinfo:
        upload_file_in_chunks(b"abc", UPLOAD_URL, session=session)
    assert excinfo.value.message == "Not authorized"
    assert session.calls_to("/chunk") == []


def test_network_failure_raises_upload_error(network_error) -> None:
    session = FakeSession(lambda call: network_error)
    with pytest.raises(UploadError):
        upload_file_in_chunks(b"abc", UPLOAD_URL, session=session)


def test_empty_file_is_rejected_without_requests() -> None:
    session = upload_server(0)
    with pytest.raises(UploadError):
        upload_file_in_chunks(b"", UPLOAD_URL, session=session)
    assert session.calls == []


def test_bounded_concurrency_uploads_every_chunk() -> None:
    session = upload_server(50)
    progress: List[float] = []

    upload_file_in_chunks(
        b"z" * 50, UPLOAD_URL, UploadOptions(chunk_size=10, max_concurrent=2), progress.append, session=session
    )

    numbers = sorted(int(c.data["chunkNumber"]) for c in session.calls_to("/chunk"))
    assert numbers == [1, 2, 3, 4, 5]
    assert session.calls_to("/complete")[0].json["uploadedChunks"] == [1, 2, 3, 4, 5]
    assert progress == sorted(progress)
    assert progress[-1] == pytest.approx(1.0)


def test_upload_from_path(tmp_path) -> None:
    path = tmp_path / "lecture.mp4"
    path.write_bytes(b"v" * 25)
    session = upload_server(25)

    upload_file_in_chunks(path, UPLOAD_URL, UploadOptions(chunk_size=10), session=session)

    init = session.calls_to("/init")[0].json
    assert init["fileName"] == "lecture.mp4"
    assert init["totalChunks"] == 3
    assert init["mimeType"] == "video/mp4"


def test_smart_upload_uses_single_request_below_threshold() -> None:
    session = FakeSession(lambda call: FakeResponse(201, {"success": True, "path": "/uploads/a.txt"}))
    progress: List[float] = []

    result = smart_upload(
        b"hello", UPLOAD_URL, UploadOptions(chunk_threshold=100), progress.append, file_name="a.txt", session=session
    )

    assert result == {"success": True, "path": "/uploads/a.txt"}
    assert len(session.calls) == 1
    assert session.calls[0].url == UPLOAD_URL
    assert session.calls[0].files["file"][0] == "a.txt"
    assert progress == [0.0, 1.0]


def test_smart_upload_chunks_above_threshold() -> None:
    session = upload_server(30)
    result = smart_upload(b"a" * 30, UPLOAD_URL, UploadOptions(chunk_size=10, chunk_threshold=20), session=session)
    assert isinstance(result, UploadResult)
    assert len(session.calls_to("/chunk")) == 3


def test_single_upload_tolerates_non_json_body() -> None:
    session = FakeSession(lambda call: FakeResponse(200, text="stored"))
    assert upload_file_with_progress(b"abc", UPLOAD_URL, session=session) == {"success": True, "message": "Upload completed"}


def test_upload_status() -> None:
    session = FakeSession(
        lambda call: FakeResponse(
            payload={
                "success": True,
                "session": {
                    "fileName": "book.pdf",
                    "fileSize": 30,
                    "totalChunks": 3,
                    "uploadedChunks": [1, 2],
                    "progress": 67,
                    "createdAt": "2024-01-01T00:00:00Z",
                },
            }
        )
    )

    status = get_upload_status(UPLOAD_URL, "sess-1", session=session)

    assert session.calls[0].url == "http://api.test/api/upload/status/sess-1"
    assert status.uploaded_chunks == [1, 2]
    assert status.progress == 67


def test_missing_path_raises_upload_error(tmp_path) -> None:
    session = upload_server(10)
    with pytest.raises(UploadError) as excinfo:
        smart_upload(tmp_path / "missing.pdf", UPLOAD_URL, session=session)
    assert "missing.pdf" in str(excinfo.value)
    assert session.calls == []


class ClosingSession(FakeSession):
    closed = False

    def __enter__(self) -> "ClosingSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.closed = True


def test_locally_created_session_is_closed(monkeypatch: pytest.MonkeyPatch) -> None:
    server = upload_server(30)
    created: List[ClosingSession] = []

    def handler(call: Call) -> FakeResponse:
        if "/status/" in call.url:
            return FakeResponse(payload={"session": {"fileName": "a.bin", "totalChunks": 3}})
        return server.handler(call)

    def make_session() -> ClosingSession:
        created.append(ClosingSession(handler))
        return created[-1]

    monkeypatch.setattr(chunked_upload, "make_session", make_session)

    upload_file_in_chunks(b"a" * 30, UPLOAD_URL, UploadOptions(chunk_size=10))
    get_upload_status(UPLOAD_URL, "sess-1")

    assert len(created) == 2
    assert all(session.closed for session in created)
