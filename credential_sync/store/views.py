"""Read-only views over a NormalizedStore.

Nothing is cached: every property re-reads the store, so views are always
consistent with the last completed mutation.

    all_bindings                   secretBindings + credentialsBindings (explicit and virtual)
    secret_bindings                secretBindings
    explicit_credentials_bindings  credentialsBindings with kind "CredentialsBinding"
    infrastructure_bindings        all_bindings where classifier says infrastructure
    dns_bindings                   all_bindings where classifier says DNS, minus shared credentials
    quotas                         quotas
"""

from __future__ import annotations

from credential_sync.classifiers import BindingClassifier
from credential_sync.store.models import (
    CREDENTIALS_BINDING,
    CREDENTIALS_BINDINGS,
    QUOTAS,
    SECRET_BINDINGS,
    SECRETS,
    WORKLOAD_IDENTITIES,
    Binding,
    Quota,
    Secret,
    SecretBinding,
    WorkloadIdentity,
)
from credential_sync.store.normalized import NormalizedStore

VIEW_NAMES: tuple[str, ...] = (
    "all",
    "infrastructure",
    "dns",
    "explicit",
    "secretbindings",
)


class CredentialViews:
    """Derived binding lists and point lookups for one store."""

    def __init__(self, store: NormalizedStore, classifier: BindingClassifier) -> None:
        self._store = store
        self._classifier = classifier

    @property
    def classifier(self) -> BindingClassifier:
        return self._classifier

    @property
    def all_bindings(self) -> list[Binding]:
        return [
            *self._store.values(SECRET_BINDINGS),
            *self._store.values(CREDENTIALS_BINDINGS),
        ]

    @property
    def secret_bindings(self) -> list[SecretBinding]:
        return self._store.values(SECRET_BINDINGS)

    @property
    def explicit_credentials_bindings(self) -> list[Binding]:
        return [
            b for b in self._store.values(CREDENTIALS_BINDINGS) if b.kind == CREDENTIALS_BINDING
        ]

    @property
    def infrastructure_bindings(self) -> list[Binding]:
        return [b for b in self.all_bindings if self._classifier.is_infrastructure_binding(b)]

    @property
    def dns_bindings(self) -> list[Binding]:
        return [
            b
            for b in self.all_bindings
            if self._classifier.is_dns_binding(b) and not self._classifier.is_shared_credential(b)
        ]

    @property
    def quotas(self) -> list[Quota]:
        return self._store.values(QUOTAS)

    def bindings(self, view: str = "all") -> list[Binding]:
        """Return the binding list named *view* (one of VIEW_NAMES)."""
        if view == "all":
            return self.all_bindings
        if view == "infrastructure":
            return self.infrastructure_bindings
        if view == "dns":
            return self.dns_bindings
        if view == "explicit":
            return self.explicit_credentials_bindings
        if view == "secretbindings":
            return self.secret_bindings
        raise ValueError(f"Unknown view {view!r}; expected one of {list(VIEW_NAMES)}")

    # ------------------------------------------------------------------
    # Point lookups: None when absent, never raise
    # ------------------------------------------------------------------

    def get_secret(self, namespace: str, name: str) -> Secret | None:
        return self._store.get(SECRETS, namespace, name)

    def get_workload_identity(self, namespace: str, name: str) -> WorkloadIdentity | None:
        return self._store.get(WORKLOAD_IDENTITIES, namespace, name)

    def get_quota(self, namespace: str, name: str) -> Quota | None:
        return self._store.get(QUOTAS, namespace, name)
