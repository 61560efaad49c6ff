"""Virtual binding synthesis for Secrets and WorkloadIdentities.

For an owner already stored in its authoritative mapping:

  1. owner_key = key(owner)
  2. drop every credentialsBindings entry keyed ``owner_key`` or
     ``owner_key/…`` that is a VirtualBinding of the owner's kind
  3. read capability tags from the owner's current labels
  4. store one VirtualBinding per tag under ``virtual_key(owner_key, tag)``;
     a tag ``virtual_key`` rejects (one containing "/") is logged and skipped

Step 2 is scoped by kind: an explicit CredentialsBinding, or a virtual
binding belonging to a WorkloadIdentity that shares the Secret's
namespace/name, is never removed when a Secret is re-synthesized.

Calling ``synthesize`` twice with an unchanged owner yields the same set.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from credential_sync.store.capabilities import capabilities_from_labels
from credential_sync.store.keys import key, owns_key, virtual_key
from credential_sync.store.models import (
    CREDENTIALS_BINDINGS,
    Owner,
    Secret,
    VirtualBinding,
    WorkloadIdentity,
)

if TYPE_CHECKING:
    from credential_sync.store.normalized import NormalizedStore

logger = logging.getLogger(__name__)


def synthesize(store: NormalizedStore, owner: Owner) -> list[VirtualBinding]:
    """Replace the virtual bindings of *owner* inside *store*.

    Returns the bindings now present for the owner, in capability order.
    """
    if not isinstance(owner, (Secret, WorkloadIdentity)):
        raise TypeError(
            f"Only Secret and WorkloadIdentity own virtual bindings, got {type(owner).__name__}"
        )

    owner_key = key(owner)
    stale = [
        k
        for k, entry in store.items(CREDENTIALS_BINDINGS)
        if owns_key(owner_key, k)
        and isinstance(entry, VirtualBinding)
        and entry.kind == owner.kind
    ]
    for k in stale:
        store._discard_virtual(k)

    created: list[VirtualBinding] = []
    for capability in capabilities_from_labels(owner.labels):
        try:
            binding_key = virtual_key(owner_key, capability)
        except ValueError as e:
            logger.warning(
                "[Synthesizer] %s %s: skipping capability label: %s", owner.kind, owner_key, e
            )
            continue
        binding = VirtualBinding.for_owner(owner, capability)
        if store._put_virtual(binding_key, binding):
            created.append(binding)

    logger.debug(
        "[Synthesizer] %s %s: removed %d, created %d virtual binding(s)",
        owner.kind,
        owner_key,
        len(stale),
        len(created),
    )
    return created
