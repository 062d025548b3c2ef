"""tools/upload.py

Minimal HTTP upload helper for finished archives.

The endpoint is expected to accept ``PUT <upload_url>/<archive name>`` with the
raw archive as the request body (S3 presigned prefixes, Artifactory, plain
WebDAV all work this way).
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import requests

UPLOAD_TIMEOUT_SECONDS = 300


def upload_target_url(upload_url: str, archive_path: Path) -> str:
    return f"{upload_url.rstrip('/')}/{Path(archive_path).name}"


def upload_archive(
    upload_url: str,
    archive_path: Path,
    *,
    token: Optional[str] = None,
    timeout: int = UPLOAD_TIMEOUT_SECONDS,
) -> str:
    """Upload one archive and return the URL it was stored under.

    Raises ``requests.HTTPError`` on a non-2xx response.
    """
    target = upload_target_url(upload_url, archive_path)
    headers: Dict[str, str] = {"Content-Type": "application/gzip"}
    if token:
        headers["Authorization"] = f"Bearer {token}"

    with Path(archive_path).open("rb") as f:
        resp = requests.put(target, headers=headers, data=f, timeout=timeout)
    resp.raise_for_status()
    return target
