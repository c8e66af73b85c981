"""Chunked file uploads for large files.

The upload endpoint speaks a four-step protocol:

* ``POST <url>/init`` with the file metadata opens a session,
* ``POST <url>/chunk`` carries one multipart chunk per request,
* ``POST <url>/complete`` asks the server to reassemble the file,
* ``POST <url>/cleanup`` discards a session after a failure.

``GET <url>/status/<session_id>`` reports a session that is still open.
"""

from __future__ import annotations

import io
import logging
import math
import mimetypes
import os
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Union

import requests

from api import make_session
from config import Settings
from errors import UploadError, raise_for_response
from models import UploadResult, UploadStatus

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
CHUNK_THRESHOLD = 10 * 1024 * 1024

Source = Union[bytes, bytearray, str, Path, BinaryIO]
ProgressCallback = Callable[[float], None]


@dataclass
class UploadOptions:
    chunk_size: int = CHUNK_SIZE
    max_concurrent: int = 1
    retry_attempts: int = 1
    retry_delay: float = 1.0
    chunk_threshold: int = CHUNK_THRESHOLD
    progress_max: float = 1.0
    timeout: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "UploadOptions":
        return cls(
            chunk_size=settings.upload_chunk_size,
            max_concurrent=settings.upload_max_concurrent,
            retry_attempts=settings.upload_retry_attempts,
            retry_delay=settings.upload_retry_delay,
            chunk_threshold=settings.upload_chunk_threshold,
            timeout=settings.request_timeout,
        )


@dataclass
class Chunk:
    number: int
    total: int
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


def plan_chunks(file_size: int, chunk_size: int) -> List[Chunk]:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be a positive number of bytes")
    total = math.ceil(file_size / chunk_size)
    return [
        Chunk(number=i + 1, total=total, start=i * chunk_size, end=min((i + 1) * chunk_size, file_size))
        for i in range(total)
    ]


def generate_upload_id() -> str:
    return f"upload_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _open_source(source: Source, file_name: Optional[str]) -> Tuple[BinaryIO, int, str, bool]:
    if isinstance(source, (bytes, bytearray)):
        return io.BytesIO(bytes(source)), len(source), file_name or "upload.bin", True
    if isinstance(source, (str, Path)):
        path = Path(source)
        try:
            size = path.stat().st_size
            return path.open("rb"), size, file_name or path.name, True
        except OSError as exc:
            raise UploadError(f"Cannot read {source}: {exc}") from exc
    source.seek(0, os.SEEK_END)
    size = source.tell()
    source.seek(0)
    name = file_name or os.path.basename(getattr(source, "name", "") or "upload.bin")
    return source, size, name, False


@contextmanager
def _session_scope(session: Optional[requests.Session]) -> Iterator[requests.Session]:
    if session is not None:
        yield session
        return
    with make_session() as owned:
        yield owned


def _read_chunk(fh: BinaryIO, chunk: Chunk) -> bytes:
    fh.seek(chunk.start)
    return fh.read(chunk.size)


def _json_or_empty(resp: requests.Response) -> Dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _post_json(
    session: requests.Session,
    url: str,
    payload: Mapping[str, Any],
    headers: Mapping[str, str],
    failure: str,
    timeout: float,
) -> Dict[str, Any]:
    try:
        resp = session.post(url, json=dict(payload), headers=dict(headers), timeout=timeout)
    except requests.RequestException as exc:
        raise UploadError(f"{failure}: {exc}") from exc
    raise_for_response(resp, failure, UploadError)
    return _json_or_empty(resp)


def _send_chunk(
    session: requests.Session,
    upload_url: str,
    chunk: Chunk,
    data: bytes,
    session_id: str,
    headers: Mapping[str, str],
    options: UploadOptions,
) -> Dict[str, Any]:
    attempt = 1
    while True:
        try:
            resp = session.post(
                f"{upload_url}/chunk",
                headers=dict(headers),
                files={"chunk": (f"chunk_{chunk.number:04d}", data, "application/octet-stream")},
                data={
                    "chunkNumber": str(chunk.number),
                    "totalChunks": str(chunk.total),
                    "sessionId": session_id,
                },
                timeout=options.timeout,
            )
            raise_for_response(resp, f"Chunk {chunk.number} upload failed", UploadError)
            return _json_or_empty(resp)
        except (requests.RequestException, UploadError) as exc:
            if attempt >= options.retry_attempts:
                raise UploadError(
                    f"Chunk {chunk.number} failed after {attempt} attempt(s): {exc}",
                    status_code=getattr(exc, "status_code", None),
                ) from exc
            logger.warning("Chunk %d failed, retrying (attempt %d)", chunk.number, attempt + 1)
            time.sleep(options.retry_delay * attempt)
            attempt += 1


def _upload_chunks(
    session: requests.Session,
    upload_url: str,
    fh: BinaryIO,
    chunks: List[Chunk],
    session_id: str,
    headers: Mapping[str, str],
    options: UploadOptions,
    on_progress: Optional[ProgressCallback],
) -> List[int]:
    total = len(chunks)
    done: List[int] = []

    def report() -> None:
        if on_progress is not None:
            on_progress(options.progress_max * len(done) / total)

    if options.max_concurrent <= 1:
        for chunk in chunks:
            _send_chunk(session, upload_url, chunk, _read_chunk(fh, chunk), session_id, headers, options)
            done.append(chunk.number)
            report()
        return done

    with ThreadPoolExecutor(max_workers=options.max_concurrent) as pool:
        for i in range(0, total, options.max_concurrent):
            batch = chunks[i : i + options.max_concurrent]
            futures = {
                pool.submit(
                    _send_chunk, session, upload_url, chunk, _read_chunk(fh, chunk), session_id, headers, options
                ): chunk
                for chunk in batch
            }
            for future in as_completed(futures):
                future.result()
                done.append(futures[future].number)
                report()
    return sorted(done)


def _cleanup(
    session: requests.Session,
    upload_url: str,
    upload_id: str,
    session_id: Optional[str],
    headers: Mapping[str, str],
    timeout: float,
) -> None:
    payload = {"uploadId": upload_id}
    if session_id:
        payload["sessionId"] = session_id
    try:
        _post_json(session, f"{upload_url}/cleanup", payload, headers, "Cleanup failed", timeout)
    except UploadError as exc:
        logger.warning("Cleanup failed for %s (%s)", upload_id, exc)


def upload_file_in_chunks(
    source: Source,
    upload_url: str,
    options: Optional[UploadOptions] = None,
    on_progress: Optional[ProgressCallback] = None,
    headers: Optional[Mapping[str, str]] = None,
    file_name: Optional[str] = None,
    mime_type: Optional[str] = None,
    session: Optional[requests.Session] = None,
) -> UploadResult:
    """Upload ``source`` to ``upload_url`` in ``options.chunk_size`` pieces.

    Chunks go out one at a time unless ``options.max_concurrent`` is above 1,
    in which case they are sent in batches of that size. ``on_progress``
    receives ``progress_max * completed / total`` after each chunk. Any failure
    stops further chunks, asks the server to clean up, and raises UploadError.
    """
    options = options or UploadOptions()
    headers = dict(headers or {})
    upload_url = upload_url.rstrip("/")

    fh, size, name, owned = _open_source(source, file_name)
    try:
        with _session_scope(session) as http:
            if size == 0:
                raise UploadError(f"Cannot upload empty file {name}")
            chunks = plan_chunks(size, options.chunk_size)
            upload_id = generate_upload_id()
            mime = mime_type or mimetypes.guess_type(name)[0] or "application/octet-stream"
            logger.info("Starting chunked upload: %s (%d bytes, %d chunks)", name, size, len(chunks))

            session_id: Optional[str] = None
            try:
                init = _post_json(
                    http,
                    f"{upload_url}/init",
                    {
                        "fileName": name,
                        "fileSize": size,
                        "totalChunks": len(chunks),
                        "uploadId": upload_id,
                        "mimeType": mime,
                    },
                    headers,
                    "Failed to initialize upload",
                    options.timeout,
                )
                session_id = init.get("sessionId") or upload_id
                uploaded = _upload_chunks(http, upload_url, fh, chunks, session_id, headers, options, on_progress)
                result = _post_json(
                    http,
                    f"{upload_url}/complete",
                    {"sessionId": session_id, "uploadedChunks": uploaded, "fileName": name, "fileSize": size},
                    headers,
                    "Failed to complete upload",
                    options.timeout,
                )
            except UploadError:
                logger.error("Chunked upload of %s failed", name)
                _cleanup(http, upload_url, upload_id, session_id, headers, options.timeout)
                raise
    finally:
        if owned:
            fh.close()

    logger.info("Upload completed: %s", name)
    return UploadResult.from_dict(result)


def upload_file_with_progress(
    source: Source,
    upload_url: str,
    on_progress: Optional[ProgressCallback] = None,
    headers: Optional[Mapping[str, str]] = None,
    file_name: Optional[str] = None,
    mime_type: Optional[str] = None,
    session: Optional[requests.Session] = None,
    field_name: str = "file",
    timeout: float = 60.0,
) -> Dict[str, Any]:
    """Single-request upload for files below the chunking threshold."""
    fh, _size, name, owned = _open_source(source, file_name)
    mime = mime_type or mimetypes.guess_type(name)[0] or "application/octet-stream"
    try:
        if on_progress is not None:
            on_progress(0.0)
        try:
            with _session_scope(session) as http:
                resp = http.post(
                    upload_url, headers=dict(headers or {}), files={field_name: (name, fh, mime)}, timeout=timeout
                )
        except requests.RequestException as exc:
            raise UploadError(f"Upload failed: Network error ({exc})") from exc
        raise_for_response(resp, "Upload failed", UploadError)
    finally:
        if owned:
            fh.close()

    if on_progress is not None:
        on_progress(1.0)
    try:
        return resp.json()
    except ValueError:
        return {"success": True, "message": "Upload completed"}


def smart_upload(
    source: Source,
    upload_url: str,
    options: Optional[UploadOptions] = None,
    on_progress: Optional[ProgressCallback] = None,
    headers: Optional[Mapping[str, str]] = None,
    file_name: Optional[str] = None,
    mime_type: Optional[str] = None,
    session: Optional[requests.Session] = None,
) -> Union[UploadResult, Dict[str, Any]]:
    options = options or UploadOptions()
    fh, size, name, owned = _open_source(source, file_name)
    if owned:
        fh.close()

    if size > options.chunk_threshold:
        logger.info("File size (%d) exceeds threshold (%d), using chunked upload", size, options.chunk_threshold)
        return upload_file_in_chunks(
            source, upload_url, options, on_progress, headers, file_name=name, mime_type=mime_type, session=session
        )
    logger.info("File size (%d) is below threshold (%d), using regular upload", size, options.chunk_threshold)
    return upload_file_with_progress(
        source,
        upload_url,
        on_progress,
        headers,
        file_name=name,
        mime_type=mime_type,
        session=session,
        timeout=options.timeout,
    )


def get_upload_status(
    upload_url: str,
    session_id: str,
    headers: Optional[Mapping[str, str]] = None,
    session: Optional[requests.Session] = None,
    timeout: float = 30.0,
) -> UploadStatus:
    url = f"{upload_url.rstrip('/')}/status/{session_id}"
    try:
        with _session_scope(session) as http:
            resp = http.get(url, headers=dict(headers or {}), timeout=timeout)
    except requests.RequestException as exc:
        raise UploadError(f"Status request failed: {exc}") from exc
    raise_for_response(resp, "Upload session not found", UploadError)
    return UploadStatus.from_dict(_json_or_empty(resp))
