"""Key index — stable string keys for every store mapping.

    key(resource)                    → "namespace/name"
    virtual_key(owner_key, tag)      → "namespace/name/tag"

Explicit resources are keyed by their own namespace/name. Neither part may
contain "/" (checked by models.ObjectMeta and NormalizedStore.upsert), so an
explicit key holds exactly one separator. Virtual binding keys are built ONLY
through ``virtual_key``, which appends exactly one more segment; the two key
spaces therefore cannot collide.
"""

from __future__ import annotations

from typing import Any

KEY_SEPARATOR = "/"


def namespace_name_key(namespace: str, name: str) -> str:
    return f"{namespace}{KEY_SEPARATOR}{name}"


def key(resource: Any) -> str:
    """Return the store key for *resource* (anything with ``.metadata``)."""
    metadata = resource.metadata
    return namespace_name_key(metadata.namespace, metadata.name)


def virtual_key(owner_key: str, capability: str) -> str:
    """Return the credentials-bindings key for one capability of an owner.

    Raises ValueError for an empty capability or one containing the key
    separator, since either would break the key-space separation.
    """
    if not capability:
        raise ValueError("capability must be a non-empty string")
    if KEY_SEPARATOR in capability:
        raise ValueError(f"capability must not contain {KEY_SEPARATOR!r}: {capability!r}")
    return f"{owner_key}{KEY_SEPARATOR}{capability}"


def owns_key(owner_key: str, candidate: str) -> bool:
    """True when *candidate* is *owner_key* itself or one of its virtual keys."""
    return candidate == owner_key or candidate.startswith(owner_key + KEY_SEPARATOR)
