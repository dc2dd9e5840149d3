"""Stable idempotency keys for task submissions."""
from __future__ import annotations

import hashlib
import json
from typing import Any, Mapping, Optional


def content_fingerprint(reference: str, namespace: str = "task") -> str:
    """Derive a fingerprint from a content reference such as a file URL.

    Args:
        reference: Identifier of the content being processed
        namespace: Prefix separating fingerprint families

    Returns:
        ``"<namespace>:<sha256 hex>"``

    Raises:
        ValueError: If the reference is empty
    """
    if not reference or not reference.strip():
        raise ValueError("Cannot fingerprint an empty content reference")
    digest = hashlib.sha256(reference.strip().encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"


def options_fingerprint(
    reference: str,
    parameters: Optional[Mapping[str, Any]] = None,
    namespace: str = "task",
) -> str:
    """Fingerprint a reference together with the feature toggles it runs with.

    Two submissions of the same file with different parameters get different keys.
    """
    if not reference or not reference.strip():
        raise ValueError("Cannot fingerprint an empty content reference")
    payload = json.dumps(
        {"ref": reference.strip(), "params": parameters or {}},
        sort_keys=True,
        default=str,
    )
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"
