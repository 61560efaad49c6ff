"""NormalizedStore — five key→record mappings and every mutation on them.

Mappings (see models.MAPPINGS):
    secretBindings      key(binding)            → SecretBinding
    secrets             key(secret)             → Secret
    credentialsBindings key(binding)            → CredentialsBinding   (explicit)
                        virtual_key(owner, tag) → VirtualBinding       (derived)
    workloadIdentities  key(wi)                 → WorkloadIdentity
    quotas              key(quota)              → Quota

Public mutation entry points are ``reset``, ``upsert``, ``replace_all`` and
``synthesize``. Readers only ever get copies; the dicts never leave this
object.

A store is owned by its caller (one per namespace session, see
session_pool.CredentialSessionPool). Build one with ``create_store()``.
Methods are synchronous and run to completion, so a reader can never observe
an authoritative Secret/WorkloadIdentity without its virtual bindings.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from credential_sync.store import synthesizer
from credential_sync.store.keys import KEY_SEPARATOR, key, namespace_name_key
from credential_sync.store.models import (
    CREDENTIALS_BINDINGS,
    MAPPING_TYPES,
    MAPPINGS,
    QUOTAS,
    SECRET_BINDINGS,
    SECRETS,
    WORKLOAD_IDENTITIES,
    Owner,
    Record,
    VirtualBinding,
    parse_record,
)

logger = logging.getLogger(__name__)


class NormalizedStore:
    """In-memory normalized credential store for one namespace scope."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Record]] = {name: {} for name in MAPPINGS}

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Clear all five mappings."""
        self._data = {name: {} for name in MAPPINGS}

    def upsert(self, mapping: str, record: Record | Mapping[str, Any]) -> Record:
        """Insert or replace *record* under ``key(record)`` in *mapping*.

        Raw mappings are parsed first, which forces the kind tag. Returns the
        stored record. Virtual bindings are rejected; they are only written
        by ``synthesize``.
        """
        record_type = self._record_type(mapping)
        if isinstance(record, Mapping):
            record = parse_record(mapping, record)
        elif not isinstance(record, record_type):
            raise ValueError(
                f"Cannot upsert {type(record).__name__} into {mapping!r}; "
                f"expected {record_type.__name__}"
            )
        self._data[mapping][self._explicit_key(record)] = record
        return record

    def replace_all(
        self,
        *,
        secret_bindings: Iterable[Any] | None = None,
        secrets: Iterable[Any] | None = None,
        credentials_bindings: Iterable[Any] | None = None,
        workload_identities: Iterable[Any] | None = None,
        quotas: Iterable[Any] | None = None,
    ) -> None:
        """Reset, upsert every supplied record, then synthesize virtual bindings.

        Missing collections count as empty. Records are parsed before the
        store is touched, so a malformed payload raises ValidationError and
        leaves the previous contents in place.
        """
        incoming = {
            SECRET_BINDINGS: [self._coerce(SECRET_BINDINGS, r) for r in secret_bindings or ()],
            SECRETS: [self._coerce(SECRETS, r) for r in secrets or ()],
            CREDENTIALS_BINDINGS: [
                self._coerce(CREDENTIALS_BINDINGS, r) for r in credentials_bindings or ()
            ],
            WORKLOAD_IDENTITIES: [
                self._coerce(WORKLOAD_IDENTITIES, r) for r in workload_identities or ()
            ],
            QUOTAS: [self._coerce(QUOTAS, r) for r in quotas or ()],
        }

        self.reset()
        for mapping, records in incoming.items():
            for record in records:
                self.upsert(mapping, record)

        owners: list[Owner] = [
            *self._data[SECRETS].values(),
            *self._data[WORKLOAD_IDENTITIES].values(),
        ]
        virtual_count = sum(len(self.synthesize(owner)) for owner in owners)

        logger.info(
            "[NormalizedStore] Replaced contents: %s (+%d virtual binding(s))",
            ", ".join(f"{m}={len(r)}" for m, r in incoming.items()),
            virtual_count,
        )

    def synthesize(self, owner: Owner) -> list[VirtualBinding]:
        """Re-derive the virtual bindings of *owner*. See synthesizer.synthesize."""
        return synthesizer.synthesize(self, owner)

    # ------------------------------------------------------------------
    # Synthesizer write path
    # ------------------------------------------------------------------

    def _put_virtual(self, virtual_key: str, binding: VirtualBinding) -> bool:
        """Store *binding* unless an explicit binding already holds *virtual_key*."""
        bindings = self._data[CREDENTIALS_BINDINGS]
        existing = bindings.get(virtual_key)
        if existing is not None and not isinstance(existing, VirtualBinding):
            logger.warning(
                "[NormalizedStore] %s is held by an explicit %s; virtual binding not stored",
                virtual_key,
                existing.kind,
            )
            return False
        bindings[virtual_key] = binding
        return True

    def _discard_virtual(self, virtual_key: str) -> None:
        entry = self._data[CREDENTIALS_BINDINGS].get(virtual_key)
        if isinstance(entry, VirtualBinding):
            del self._data[CREDENTIALS_BINDINGS][virtual_key]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def values(self, mapping: str) -> list[Record]:
        """Records of *mapping* in insertion order (a copy)."""
        return list(self._mapping(mapping).values())

    def keys(self, mapping: str) -> list[str]:
        return list(self._mapping(mapping).keys())

    def items(self, mapping: str) -> list[tuple[str, Record]]:
        return list(self._mapping(mapping).items())

    def get(self, mapping: str, namespace: str, name: str) -> Record | None:
        return self._mapping(mapping).get(namespace_name_key(namespace, name))

    def get_by_key(self, mapping: str, store_key: str) -> Record | None:
        return self._mapping(mapping).get(store_key)

    def counts(self) -> dict[str, int]:
        return {name: len(records) for name, records in self._data.items()}

    @property
    def virtual_binding_count(self) -> int:
        return sum(
            1 for r in self._data[CREDENTIALS_BINDINGS].values() if isinstance(r, VirtualBinding)
        )

    @property
    def is_empty(self) -> bool:
        return not any(self._data.values())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _mapping(self, mapping: str) -> dict[str, Record]:
        try:
            return self._data[mapping]
        except KeyError:
            raise ValueError(f"Unknown store mapping: {mapping!r}") from None

    @staticmethod
    def _record_type(mapping: str) -> type:
        try:
            return MAPPING_TYPES[mapping][0]
        except KeyError:
            raise ValueError(f"Unknown store mapping: {mapping!r}") from None

    def _coerce(self, mapping: str, record: Any) -> Record:
        if isinstance(record, Mapping):
            return parse_record(mapping, record)
        record_type = self._record_type(mapping)
        if not isinstance(record, record_type):
            raise ValueError(
                f"Cannot store {type(record).__name__} in {mapping!r}; "
                f"expected {record_type.__name__}"
            )
        self._explicit_key(record)
        return record

    @staticmethod
    def _explicit_key(record: Record) -> str:
        store_key = key(record)
        if store_key.count(KEY_SEPARATOR) != 1:
            raise ValueError(
                f"{record.kind} {store_key!r}: namespace and name must not contain {KEY_SEPARATOR!r}"
            )
        return store_key


def create_store() -> NormalizedStore:
    """Return a fresh, empty store owned by the caller."""
    return NormalizedStore()
