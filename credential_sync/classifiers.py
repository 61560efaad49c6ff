"""Provider-type classifiers consumed by the view layer.

The set of infrastructure provider types (from cloud profiles) and DNS
provider types (from registered extensions) is owned by other parts of the
system; this module only holds the current sets and answers predicates.

Configuration (comma-separated, whitespace ignored):
    CREDENTIAL_SYNC_INFRA_PROVIDER_TYPES   e.g. "aws,azure,gcp,openstack"
    CREDENTIAL_SYNC_DNS_PROVIDER_TYPES     e.g. "aws-route53,google-clouddns"
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Protocol


class BindingClassifier(Protocol):
    def is_infrastructure_binding(self, binding: Any) -> bool: ...

    def is_dns_binding(self, binding: Any) -> bool: ...

    def is_shared_credential(self, binding: Any) -> bool: ...


def _split_types(raw: str) -> frozenset[str]:
    return frozenset(t.strip() for t in raw.split(",") if t.strip())


@dataclass(frozen=True)
class ProviderTypeClassifier:
    """Classifies bindings by ``provider_type`` against configured type sets."""

    infrastructure_types: frozenset[str] = frozenset()
    dns_types: frozenset[str] = frozenset()

    @classmethod
    def from_env(cls) -> ProviderTypeClassifier:
        return cls(
            infrastructure_types=_split_types(
                os.getenv("CREDENTIAL_SYNC_INFRA_PROVIDER_TYPES", "")
            ),
            dns_types=_split_types(os.getenv("CREDENTIAL_SYNC_DNS_PROVIDER_TYPES", "")),
        )

    def is_infrastructure_binding(self, binding: Any) -> bool:
        return binding.provider_type in self.infrastructure_types

    def is_dns_binding(self, binding: Any) -> bool:
        return binding.provider_type in self.dns_types

    def is_shared_credential(self, binding: Any) -> bool:
        """True when the referenced credential lives outside the binding's namespace.

        Such credentials are provided by an operator (e.g. a trial secret in
        the garden namespace) and must not be offered for DNS configuration.
        """
        ref = binding.credential_ref
        if ref is None:
            return False
        return ref.namespace != binding.metadata.namespace
