"""Load raw ASR response JSON from an S3 URI or a local file path."""

from __future__ import annotations

from pathlib import Path

import boto3  # type: ignore[import-untyped]


def load_asr_response(source_uri: str) -> bytes:
    """
    Load the raw ASR response bytes from source_uri.
    - s3://bucket/key -> fetch via boto3.
    - file:///path or /path -> read from filesystem.
    - Otherwise treat as local path.

    The bytes are returned undecoded; parsing (and ExtractionError on bad JSON)
    belongs to the extractor.

    Raises:
        FileNotFoundError: Local file does not exist.
        ValueError: Malformed S3 URI.
    """
    source_uri = source_uri.strip()
    if source_uri.startswith("s3://"):
        return _load_from_s3(source_uri)
    if source_uri.startswith("file://"):
        path = Path(source_uri[7:])
    else:
        path = Path(source_uri)
    return _load_from_file(path)


def parse_s3_uri(uri: str) -> tuple[str, str]:
    """Return (bucket, key) for an s3:// URI."""
    if not uri.startswith("s3://") or len(uri) < 8:
        raise ValueError(f"Invalid S3 URI: {uri}")
    rest = uri[5:]
    parts = rest.split("/", 1)
    bucket = parts[0]
    key = parts[1] if len(parts) > 1 else ""
    if not bucket or not key:
        raise ValueError(f"Invalid S3 key: {uri}")
    return bucket, key


def _load_from_s3(uri: str) -> bytes:
    """Get object content."""
    bucket, key = parse_s3_uri(uri)
    client = boto3.client("s3")
    response = client.get_object(Bucket=bucket, Key=key)
    return response["Body"].read()


def _load_from_file(path: Path) -> bytes:
    """Read bytes from local file."""
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return path.read_bytes()
