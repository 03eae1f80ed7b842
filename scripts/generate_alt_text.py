#!/usr/bin/env python
"""Operator front end for the alt-text service.

    generate_alt_text.py single <attachment_id> --image-url URL [--keywords "a, b"]
    generate_alt_text.py bulk

Single mode exits 1 on critical failures (credentials, permissions, quota)
and 2 on any other failure. Bulk mode only logs; press Ctrl-C to stop after the
current image.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from alttext.config import get_settings
from alttext.models import BulkJob, BulkLogEntry, BulkState, is_critical_error
from alttext.services.alt_text_api import AltTextAPIClient
from alttext.services.bulk_runner import BulkRunner

logger = logging.getLogger("generate_alt_text")


def _client() -> AltTextAPIClient:
    settings = get_settings()
    return AltTextAPIClient(settings.service_url, nonce=settings.api_nonce, role=settings.service_role)


async def run_single(attachment_id: str, image_url: str, keywords: str) -> int:
    api = _client()
    try:
        response = await api.generate(attachment_id, image_url, keywords)
    finally:
        await api.close()

    if response.success and response.alt_text:
        print(response.alt_text.strip())
        return 0

    kind = response.error_kind.value if response.error_kind else "unknown_error"
    if is_critical_error(kind):
        print(f"Error: {response.message}", file=sys.stderr)
        return 1
    logger.warning("Non-critical error (%s): %s", kind, response.message)
    return 2


def _print_progress(job: BulkJob) -> None:
    print(
        f"{job.processed} / {job.total} ({job.percentage:.0f}%)  "
        f"✓ {job.stats.success}  ✗ {job.stats.failed}  ⊘ {job.stats.skipped}"
    )


def _print_log(entry: BulkLogEntry) -> None:
    print(entry.render())


async def run_bulk() -> int:
    settings = get_settings()
    api = _client()
    runner = BulkRunner(
        api,
        delay=settings.bulk_delay_seconds,
        on_progress=_print_progress,
        on_log=_print_log,
    )
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, runner.request_stop)
    except NotImplementedError:  # pragma: no cover - Windows event loops
        pass

    try:
        job = await runner.start()
    finally:
        await api.close()

    if job.state is BulkState.COMPLETED:
        print(f"Bulk generation complete! Processed {job.total} images.")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate image alt text")
    sub = parser.add_subparsers(dest="command", required=True)

    single = sub.add_parser("single", help="Generate alt text for one attachment")
    single.add_argument("attachment_id")
    single.add_argument("--image-url", required=True)
    single.add_argument("--keywords", default="")

    sub.add_parser("bulk", help="Generate alt text for every image that lacks it")
    args = parser.parse_args()

    logging.basicConfig(level=get_settings().log_level.upper())

    if args.command == "single":
        code = asyncio.run(run_single(args.attachment_id, args.image_url, args.keywords))
    else:
        code = asyncio.run(run_bulk())
    sys.exit(code)


if __name__ == "__main__":
    main()
