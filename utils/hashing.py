"""Content fingerprints used as the per-project dedup key."""
import hashlib


def content_fingerprint(data: bytes) -> str:
    """SHA-256 hex digest of the full byte content."""
    return hashlib.sha256(data).hexdigest()
