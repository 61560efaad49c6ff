"""Normalized credential store — keys, capabilities, records, synthesis and views.

Public surface:
    NormalizedStore / create_store  — the five mappings and all mutation.
    CredentialViews                 — read-only derived lists and lookups.
    capabilities_from_labels        — capability tags from provider labels.
    key / virtual_key               — store key construction.
"""

from credential_sync.store.capabilities import CAPABILITY_LABEL_PREFIX, capabilities_from_labels
from credential_sync.store.keys import key, namespace_name_key, virtual_key
from credential_sync.store.models import (
    CredentialsBinding,
    ObjectMeta,
    Quota,
    ResourceRef,
    Secret,
    SecretBinding,
    VirtualBinding,
    WorkloadIdentity,
)
from credential_sync.store.normalized import NormalizedStore, create_store
from credential_sync.store.views import CredentialViews

__all__ = [
    "CAPABILITY_LABEL_PREFIX",
    "CredentialViews",
    "CredentialsBinding",
    "NormalizedStore",
    "ObjectMeta",
    "Quota",
    "ResourceRef",
    "Secret",
    "SecretBinding",
    "VirtualBinding",
    "WorkloadIdentity",
    "capabilities_from_labels",
    "create_store",
    "key",
    "namespace_name_key",
    "virtual_key",
]
