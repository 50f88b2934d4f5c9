"""
cachewrap - Cache Dump Files

Reads and writes the JSON file format shared by the backends' dump/load.
Files are optionally gzip-compressed; compression is detected on read.
"""

import gzip
import json
import logging
import zlib
from pathlib import Path
from typing import Any

from ..errors import CacheBackendError
from .interface import DUMP_FORMAT, DUMP_VERSION

logger = logging.getLogger(__name__)

_GZIP_MAGIC = b"\x1f\x8b"


def write_dump(path: str, namespace: str, entries: list[dict[str, Any]], compress: bool = False) -> int:
    """
    Write entries to ``path``.

    Each entry is ``{"key": str, "value": <json>, "expires_at": float | None}`` where
    ``key`` is the encoded key (``format_key``) without the namespace prefix.

    Raises:
        CacheBackendError: If a value is not JSON serializable or the file cannot be written
    """
    document = {
        "format": DUMP_FORMAT,
        "version": DUMP_VERSION,
        "namespace": namespace,
        "entries": entries,
    }

    try:
        payload = json.dumps(document, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise CacheBackendError(
            f"Failed to serialize cache entries for dump: {e}",
            operation="dump",
            details={"path": path, "error": str(e)},
        ) from e

    if compress:
        payload = gzip.compress(payload)

    try:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(payload)
    except OSError as e:
        raise CacheBackendError(
            f"Failed to write dump file '{path}': {e}",
            operation="dump",
            details={"path": path, "error": str(e)},
        ) from e

    logger.info(
        f"Dumped {len(entries)} entries from namespace '{namespace}' to {path}",
        extra={"path": path, "namespace": namespace, "entries": len(entries), "compressed": compress},
    )
    return len(entries)


def read_dump(path: str) -> list[dict[str, Any]]:
    """
    Read the entries of a dump file.

    Raises:
        CacheBackendError: If the file is missing, unreadable or not a cachewrap dump
    """
    try:
        payload = Path(path).read_bytes()
        if payload[:2] == _GZIP_MAGIC:
            payload = gzip.decompress(payload)
        document = json.loads(payload.decode("utf-8"))
    except (OSError, EOFError, ValueError, zlib.error) as e:
        raise CacheBackendError(
            f"Failed to read dump file '{path}': {e}",
            operation="load",
            details={"path": path, "error": str(e)},
        ) from e

    if not isinstance(document, dict) or document.get("format") != DUMP_FORMAT:
        raise CacheBackendError(
            f"File '{path}' is not a cache dump",
            operation="load",
            details={"path": path},
        )

    if document.get("version") != DUMP_VERSION:
        raise CacheBackendError(
            f"Unsupported dump version: {document.get('version')}",
            operation="load",
            details={"path": path, "version": document.get("version")},
        )

    entries = document.get("entries")
    if not isinstance(entries, list):
        raise CacheBackendError(
            f"Dump file '{path}' has no entry list",
            operation="load",
            details={"path": path},
        )

    for entry in entries:
        if not isinstance(entry, dict) or not isinstance(entry.get("key"), str):
            raise CacheBackendError(
                f"Dump file '{path}' contains a malformed entry",
                operation="load",
                details={"path": path, "entry": repr(entry)[:100]},
            )
    return entries
