"""CredentialService — the mutation API for one namespace's credential store.

Public surface:

    fetch_all()              full refresh; replaces the store or resets it on failure
    create_binding(params)   persist, then apply the authoritative response
    update_binding(params)   persist, then apply the authoritative response
    delete_binding(ref)      persist, then full refresh (no local removal)
    views                    CredentialViews over the store

Failure contract:
  - fetch_all: any error resets the store to empty, then propagates. The
    store is never left holding a mix of old and new data.
  - create/update/delete: errors from the backend propagate and the store
    keeps its previous contents. No notification is sent.

The service never retries and never inspects error contents.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from credential_sync.classifiers import BindingClassifier, ProviderTypeClassifier
from credential_sync.client.dashboard_client import BindingRef, DashboardClient, MutationResult
from credential_sync.metrics import SyncMetrics, SyncTimer
from credential_sync.notifications import LoggingNotificationSink, NotificationSink
from credential_sync.store.models import (
    CREDENTIALS_BINDINGS,
    SECRET_BINDINGS,
    SECRETS,
    WORKLOAD_IDENTITIES,
    SecretBinding,
)
from credential_sync.store.normalized import NormalizedStore, create_store
from credential_sync.store.views import CredentialViews

logger = logging.getLogger(__name__)


def _metadata_name(resource: Any) -> str:
    if not isinstance(resource, Mapping):
        return ""
    metadata = resource.get("metadata")
    if not isinstance(metadata, Mapping):
        return ""
    return str(metadata.get("name") or "")


class CredentialService:
    """Owns one NormalizedStore and keeps it in sync with the backend."""

    def __init__(
        self,
        client: DashboardClient,
        namespace: str,
        classifier: BindingClassifier | None = None,
        notifier: NotificationSink | None = None,
        store: NormalizedStore | None = None,
    ) -> None:
        self._client = client
        self._namespace = namespace
        self._store = store if store is not None else create_store()
        self._notifier = notifier if notifier is not None else LoggingNotificationSink()
        self._views = CredentialViews(
            self._store,
            classifier if classifier is not None else ProviderTypeClassifier(),
        )
        self._last_sync: SyncMetrics | None = None
        self._loaded = False

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def views(self) -> CredentialViews:
        return self._views

    @property
    def store(self) -> NormalizedStore:
        return self._store

    @property
    def last_sync(self) -> SyncMetrics | None:
        return self._last_sync

    @property
    def loaded(self) -> bool:
        """True after a successful fetch_all, until the next failed one."""
        return self._loaded

    # ------------------------------------------------------------------
    # Full refresh
    # ------------------------------------------------------------------

    async def fetch_all(self) -> SyncMetrics:
        """Fetch every collection for the namespace and replace the store."""
        timer = SyncTimer("fetch_all", namespace=self._namespace)
        try:
            async with timer:
                payload = await self._client.fetch_credentials(self._namespace)
                self._store.replace_all(
                    secret_bindings=payload.secret_bindings,
                    secrets=payload.secrets,
                    credentials_bindings=payload.credentials_bindings,
                    workload_identities=payload.workload_identities,
                    quotas=payload.quotas,
                )
                timer.record_counts(self._store.counts(), self._store.virtual_binding_count)
        except Exception as exc:
            self._store.reset()
            self._loaded = False
            self._last_sync = timer.result
            logger.warning(
                "[CredentialService] fetch_all failed for namespace=%s; store reset: %s",
                self._namespace,
                exc,
            )
            raise

        self._loaded = True
        self._last_sync = timer.result
        logger.info(
            "[CredentialService] namespace=%s synced in %.0f ms",
            self._namespace,
            self._last_sync.duration_ms,
        )
        return self._last_sync

    async def ensure_loaded(self) -> None:
        """Run fetch_all once if the store has not been populated yet."""
        if not self._loaded:
            await self.fetch_all()

    def reset(self) -> None:
        self._store.reset()
        self._loaded = False

    # ------------------------------------------------------------------
    # Single-resource mutations
    # ------------------------------------------------------------------

    async def create_binding(self, params: Mapping[str, Any]) -> MutationResult:
        """Create a binding (and optionally its secret) in the backend.

        *params*: ``{"binding": {...}, "secret": {...}?}``.
        """
        binding = params.get("binding")
        if not isinstance(binding, Mapping):
            raise ValueError("create_binding requires a 'binding' object")
        result = await self._client.create_credential(
            self._namespace, binding=dict(binding), secret=params.get("secret")
        )
        self._apply(result)
        name = result.name or _metadata_name(binding)
        await self._notifier.notify_success(f"Cloud Provider credential {name} created")
        return result

    async def update_binding(self, params: Mapping[str, Any]) -> MutationResult:
        """Update the secret behind a binding.

        *params*: ``{"secret": {...}, "binding": {...}?}``. The binding is only
        used to name the credential in the success message.
        """
        secret = params.get("secret")
        if not isinstance(secret, Mapping):
            raise ValueError("update_binding requires a 'secret' object")
        binding = params.get("binding")
        result = await self._client.update_credential(self._namespace, secret=dict(secret))
        self._apply(result)
        name = _metadata_name(binding) or _metadata_name(secret) or result.name
        await self._notifier.notify_success(f"Cloud Provider credential {name} updated")
        return result

    async def delete_binding(self, ref: BindingRef) -> None:
        """Delete a binding in the backend, then refresh everything.

        Deletion is not mirrored locally; the follow-up fetch_all decides
        what remains (bindings, their secrets and virtual bindings alike).
        """
        await self._client.delete_credential(self._namespace, ref)
        await self.fetch_all()
        await self._notifier.notify_success(f"Cloud Provider credential {ref.name} deleted")

    def _apply(self, result: MutationResult) -> None:
        """Write the authoritative records of a mutation response into the store."""
        if result.binding is not None:
            mapping = (
                SECRET_BINDINGS if isinstance(result.binding, SecretBinding) else CREDENTIALS_BINDINGS
            )
            self._store.upsert(mapping, result.binding)

        if result.secret is not None:
            self._store.upsert(SECRETS, result.secret)
            self._store.synthesize(result.secret)

        if result.workload_identity is not None:
            self._store.upsert(WORKLOAD_IDENTITIES, result.workload_identity)
            self._store.synthesize(result.workload_identity)

        # Quotas have no incremental path; only fetch_all replaces them.
