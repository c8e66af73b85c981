"""CLI entry for the admin API client."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from tqdm import tqdm

from api import ApiClient, auth_headers
from chunked_upload import UploadOptions, get_upload_status, upload_file_in_chunks
from config import Settings
from errors import ApiError
from filters import filter_records
from query_cache import QueryCache
from resources import RESOURCE_NAMES
from resources.base import ResourceClient, extract_record, extract_records
from resources.jobs import JobsResource
from storage import save_records_to_csv

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def _parse_params(pairs: List[str]) -> Dict[str, str]:
    params: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"Expected key=value, got {pair!r}")
        params[key] = value
    return params


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="eduhub-admin", description="Admin client for the job board API")
    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List a resource collection")
    p_list.add_argument("resource", choices=RESOURCE_NAMES)
    p_list.add_argument("--param", action="append", default=[], metavar="KEY=VALUE")
    p_list.add_argument("--search", help="Filter the fetched page client-side")
    p_list.add_argument("--output", help="Write the records to this CSV file")

    p_get = sub.add_parser("get", help="Show one record")
    p_get.add_argument("resource", choices=RESOURCE_NAMES)
    p_get.add_argument("id")

    p_delete = sub.add_parser("delete", help="Delete one record")
    p_delete.add_argument("resource", choices=RESOURCE_NAMES)
    p_delete.add_argument("id")

    p_toggle = sub.add_parser("toggle-status", help="Toggle a job between active and inactive")
    p_toggle.add_argument("id")

    p_upload = sub.add_parser("upload", help="Upload a file in chunks")
    p_upload.add_argument("path")
    p_upload.add_argument("--chunk-size", type=int)
    p_upload.add_argument("--concurrency", type=int)
    p_upload.add_argument("--retries", type=int, help="Attempts per chunk")

    p_status = sub.add_parser("upload-status", help="Show an open upload session")
    p_status.add_argument("session_id")
    return parser


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def run(args: argparse.Namespace, settings: Settings, client: ApiClient) -> int:
    cache = QueryCache(settings.query_stale_time, settings.query_cache_time)
    token = settings.api_token

    if args.command == "list":
        resource = ResourceClient(client, cache, args.resource, token=token)
        result = resource.list(_parse_params(args.param))
        if result.is_error:
            raise result.error
        records = extract_records(result.data, args.resource)
        logger.info("Fetched %d %s", len(records), args.resource)
        if args.search:
            records = filter_records(records, args.search)
            logger.info("%d %s match %r", len(records), args.resource, args.search)
        if args.output:
            save_records_to_csv(records, args.output)
            logger.info("Saved %s to %s", args.resource, args.output)
        else:
            _print_json(records)
        return 0

    if args.command == "get":
        result = ResourceClient(client, cache, args.resource, token=token).get(args.id)
        if result.is_error:
            raise result.error
        _print_json(extract_record(result.data))
        return 0

    if args.command == "delete":
        result = ResourceClient(client, cache, args.resource, token=token).delete(args.id)
        return 0 if result.success else 1

    if args.command == "toggle-status":
        _print_json(JobsResource(client, cache, token=token).toggle_status(args.id))
        return 0

    upload_url = client.url_for("upload")
    headers = auth_headers(token, settings.auth_scheme)

    if args.command == "upload":
        options = UploadOptions.from_settings(settings)
        if args.chunk_size is not None:
            if args.chunk_size <= 0:
                raise argparse.ArgumentTypeError("--chunk-size must be positive")
            options.chunk_size = args.chunk_size
        if args.concurrency is not None:
            options.max_concurrent = args.concurrency
        if args.retries is not None:
            options.retry_attempts = args.retries
        with tqdm(total=100, desc="Uploading", unit="%") as bar:

            def on_progress(fraction: float) -> None:
                bar.update(round(fraction * 100) - bar.n)

            result = upload_file_in_chunks(
                args.path, upload_url, options, on_progress, headers, session=client.session
            )
        print(f"Stored as {result.file_name} ({result.file_size} bytes)")
        return 0

    if args.command == "upload-status":
        status = get_upload_status(upload_url, args.session_id, headers, session=client.session)
        print(f"{status.file_name}: {len(status.uploaded_chunks)}/{status.total_chunks} chunks ({status.progress}%)")
        return 0

    return 2


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    client = ApiClient(settings)
    try:
        return run(args, settings, client)
    except (ApiError, argparse.ArgumentTypeError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
