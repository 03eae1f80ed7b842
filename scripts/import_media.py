#!/usr/bin/env python
"""Script to upload local images to the media bucket and register them as attachments."""
from __future__ import annotations

import argparse
import mimetypes
import uuid
from pathlib import Path

from alttext.services.firebase_db import get_firebase_db
from alttext.services.storage import get_storage_service


def main() -> None:
    parser = argparse.ArgumentParser(description="Import images into the alt-text media library")
    parser.add_argument("paths", nargs="+", type=Path, help="Image files to import")
    parser.add_argument("--keywords", default="", help="Comma-separated keyword hints for every image")
    parser.add_argument("--no-compress", action="store_true", help="Upload original bytes")
    args = parser.parse_args()

    store = get_firebase_db()
    storage_service = get_storage_service()

    for path in args.paths:
        content_type = mimetypes.guess_type(path.name)[0] or ""
        if not content_type.startswith("image/"):
            print(f"Skipping {path}: not an image")
            continue
        gs_path, url, final_content_type = storage_service.upload_image(
            path.read_bytes(),
            uuid.uuid4().hex,
            content_type=content_type,
            compress=not args.no_compress,
        )
        attachment = store.add_attachment(
            {
                "url": url,
                "mime_type": final_content_type,
                "title": path.stem,
                "keywords": args.keywords,
                "gcs_path": gs_path,
            }
        )
        print(f"Imported {path} as attachment {attachment.id} ({gs_path})")


if __name__ == "__main__":
    main()
