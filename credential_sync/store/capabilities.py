"""Capability extraction from resource labels.

A Secret or WorkloadIdentity declares which providers it can serve through
boolean labels in the ``provider.shoot.gardener.cloud/`` namespace:

    provider.shoot.gardener.cloud/aws: "true"    → capability "aws"
    provider.shoot.gardener.cloud/gcp: "false"   → ignored
"""

from __future__ import annotations

from collections.abc import Mapping

CAPABILITY_LABEL_PREFIX = "provider.shoot.gardener.cloud/"


def capabilities_from_labels(labels: Mapping[str, str] | None) -> list[str]:
    """Return capability tags in label insertion order.

    Only labels whose value is exactly the string "true" count. Absent or
    empty labels yield an empty list.
    """
    if not labels:
        return []
    return [
        label[len(CAPABILITY_LABEL_PREFIX):]
        for label, value in labels.items()
        if value == "true"
        and label.startswith(CAPABILITY_LABEL_PREFIX)
        and len(label) > len(CAPABILITY_LABEL_PREFIX)
    ]
