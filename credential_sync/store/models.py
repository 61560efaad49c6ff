"""Typed resource model — a closed tagged union over the five stored kinds.

Authoritative records (parsed from backend payloads):
    SecretBinding       kind "SecretBinding"
    Secret              kind "Secret"
    CredentialsBinding  kind "CredentialsBinding"
    WorkloadIdentity    kind "WorkloadIdentity"
    Quota               kind "Quota"

Derived records (built by the synthesizer, never parsed):
    VirtualBinding      kind copied from its owner ("Secret" | "WorkloadIdentity")

Every authoritative record keeps the raw payload it was parsed from in
``raw`` (excluded from equality), so ``to_dict()`` returns the server's
fields untouched apart from the forced kind tag.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal, Union

from credential_sync.errors import ValidationError
from credential_sync.store.keys import KEY_SEPARATOR

# ---------------------------------------------------------------------------
# Kind tags and mapping names
# ---------------------------------------------------------------------------

SECRET_BINDING = "SecretBinding"
SECRET = "Secret"
CREDENTIALS_BINDING = "CredentialsBinding"
WORKLOAD_IDENTITY = "WorkloadIdentity"
QUOTA = "Quota"

OwnerKind = Literal["Secret", "WorkloadIdentity"]

# Store mapping names, in the order the backend returns them.
SECRET_BINDINGS = "secretBindings"
SECRETS = "secrets"
CREDENTIALS_BINDINGS = "credentialsBindings"
WORKLOAD_IDENTITIES = "workloadIdentities"
QUOTAS = "quotas"

MAPPINGS: tuple[str, ...] = (
    SECRET_BINDINGS,
    SECRETS,
    CREDENTIALS_BINDINGS,
    WORKLOAD_IDENTITIES,
    QUOTAS,
)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _require_mapping(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValidationError(f"{what} must be an object, got {type(value).__name__}")
    return value


def _require_str(value: Any, what: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{what} must be a non-empty string, got {value!r}")
    return value


def _require_segment(value: Any, what: str) -> str:
    # Identity parts become key segments; a separator would let an explicit
    # key alias a virtual one.
    value = _require_str(value, what)
    if KEY_SEPARATOR in value:
        raise ValidationError(f"{what} must not contain {KEY_SEPARATOR!r}, got {value!r}")
    return value


def _provider_type(raw: Mapping[str, Any]) -> str:
    provider = raw.get("provider") or {}
    if not isinstance(provider, Mapping):
        raise ValidationError(f"provider must be an object, got {type(provider).__name__}")
    return str(provider.get("type") or "")


# ---------------------------------------------------------------------------
# Shared value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ObjectMeta:
    """The identity subset of Kubernetes ObjectMeta the store relies on."""

    namespace: str
    name: str
    uid: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, raw: Any) -> ObjectMeta:
        meta = _require_mapping(raw, "metadata")
        labels = meta.get("labels") or {}
        if not isinstance(labels, Mapping):
            raise ValidationError(f"metadata.labels must be an object, got {type(labels).__name__}")
        return cls(
            namespace=_require_segment(meta.get("namespace"), "metadata.namespace"),
            name=_require_segment(meta.get("name"), "metadata.name"),
            uid=str(meta.get("uid") or ""),
            labels=dict(labels),
            raw=dict(meta),
        )

    def to_dict(self) -> dict[str, Any]:
        out = dict(self.raw)
        out.update(namespace=self.namespace, name=self.name, uid=self.uid)
        if self.labels or "labels" in out:
            out["labels"] = dict(self.labels)
        return out


@dataclass(frozen=True)
class ResourceRef:
    """Reference from a binding to the credential it uses."""

    namespace: str
    name: str
    kind: str = ""
    api_version: str = ""

    @classmethod
    def from_dict(cls, raw: Any, default_namespace: str, what: str) -> ResourceRef:
        ref = _require_mapping(raw, what)
        return cls(
            namespace=str(ref.get("namespace") or default_namespace),
            name=_require_str(ref.get("name"), f"{what}.name"),
            kind=str(ref.get("kind") or ""),
            api_version=str(ref.get("apiVersion") or ""),
        )


# ---------------------------------------------------------------------------
# Authoritative records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Resource:
    metadata: ObjectMeta
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    kind: ClassVar[str] = ""

    @classmethod
    def from_dict(cls, raw: Any):
        body = _require_mapping(raw, cls.kind or "resource")
        return cls(metadata=ObjectMeta.from_dict(body.get("metadata")), raw=dict(body))

    def to_dict(self) -> dict[str, Any]:
        out = dict(self.raw)
        out["kind"] = self.kind
        out["metadata"] = self.metadata.to_dict()
        return out


@dataclass(frozen=True)
class SecretBinding(_Resource):
    secret_ref: ResourceRef | None = None
    provider_type: str = ""
    quotas: tuple[ResourceRef, ...] = ()

    kind: ClassVar[str] = SECRET_BINDING

    @classmethod
    def from_dict(cls, raw: Any) -> SecretBinding:
        body = _require_mapping(raw, cls.kind)
        metadata = ObjectMeta.from_dict(body.get("metadata"))
        quotas = body.get("quotas") or []
        if not isinstance(quotas, list):
            raise ValidationError("SecretBinding.quotas must be a list")
        return cls(
            metadata=metadata,
            raw=dict(body),
            secret_ref=ResourceRef.from_dict(
                body.get("secretRef"), metadata.namespace, "secretRef"
            ),
            provider_type=_provider_type(body),
            quotas=tuple(
                ResourceRef.from_dict(q, metadata.namespace, "quotas[]") for q in quotas
            ),
        )

    @property
    def credential_ref(self) -> ResourceRef | None:
        return self.secret_ref


@dataclass(frozen=True)
class Secret(_Resource):
    kind: ClassVar[str] = SECRET

    @property
    def labels(self) -> dict[str, str]:
        return self.metadata.labels


@dataclass(frozen=True)
class WorkloadIdentity(_Resource):
    api_version: str = ""

    kind: ClassVar[str] = WORKLOAD_IDENTITY

    @classmethod
    def from_dict(cls, raw: Any) -> WorkloadIdentity:
        body = _require_mapping(raw, cls.kind)
        return cls(
            metadata=ObjectMeta.from_dict(body.get("metadata")),
            raw=dict(body),
            api_version=str(body.get("apiVersion") or ""),
        )

    @property
    def labels(self) -> dict[str, str]:
        return self.metadata.labels


@dataclass(frozen=True)
class CredentialsBinding(_Resource):
    credentials_ref: ResourceRef | None = None
    provider_type: str = ""

    kind: ClassVar[str] = CREDENTIALS_BINDING

    @classmethod
    def from_dict(cls, raw: Any) -> CredentialsBinding:
        body = _require_mapping(raw, cls.kind)
        metadata = ObjectMeta.from_dict(body.get("metadata"))
        return cls(
            metadata=metadata,
            raw=dict(body),
            credentials_ref=ResourceRef.from_dict(
                body.get("credentialsRef"), metadata.namespace, "credentialsRef"
            ),
            provider_type=_provider_type(body),
        )

    @property
    def credential_ref(self) -> ResourceRef | None:
        return self.credentials_ref


@dataclass(frozen=True)
class Quota(_Resource):
    kind: ClassVar[str] = QUOTA


# ---------------------------------------------------------------------------
# Derived record
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VirtualBinding:
    """A binding synthesized from one capability label of a Secret or WorkloadIdentity.

    Identity: ``metadata`` is the owner's metadata with ``uid`` replaced by
    ``<owner uid>-<capability>``. The store key is built by
    ``keys.virtual_key`` and is never derived from this object alone.
    """

    metadata: ObjectMeta
    owner_kind: OwnerKind
    provider_type: str
    owner_ref: ResourceRef
    api_version: str = ""

    @property
    def kind(self) -> str:
        return self.owner_kind

    @property
    def credential_ref(self) -> ResourceRef:
        return self.owner_ref

    @classmethod
    def for_owner(cls, owner: Secret | WorkloadIdentity, capability: str) -> VirtualBinding:
        metadata = dataclasses.replace(
            owner.metadata, uid=f"{owner.metadata.uid}-{capability}"
        )
        if isinstance(owner, WorkloadIdentity):
            return cls(
                metadata=metadata,
                owner_kind=WORKLOAD_IDENTITY,
                provider_type=capability,
                owner_ref=ResourceRef(
                    namespace=owner.metadata.namespace,
                    name=owner.metadata.name,
                    kind=WORKLOAD_IDENTITY,
                    api_version=owner.api_version,
                ),
                api_version=owner.api_version,
            )
        return cls(
            metadata=metadata,
            owner_kind=SECRET,
            provider_type=capability,
            owner_ref=ResourceRef(
                namespace=owner.metadata.namespace,
                name=owner.metadata.name,
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "kind": self.kind,
            "metadata": self.metadata.to_dict(),
            "provider": {"type": self.provider_type},
        }
        if self.owner_kind == WORKLOAD_IDENTITY:
            out["apiVersion"] = self.api_version
            out["credentialsRef"] = {
                "name": self.owner_ref.name,
                "namespace": self.owner_ref.namespace,
                "kind": WORKLOAD_IDENTITY,
                "apiVersion": self.api_version,
            }
        else:
            out["secretRef"] = {
                "name": self.owner_ref.name,
                "namespace": self.owner_ref.namespace,
            }
        return out


# ---------------------------------------------------------------------------
# Union types and dispatch
# ---------------------------------------------------------------------------

Owner = Union[Secret, WorkloadIdentity]
Binding = Union[SecretBinding, CredentialsBinding, VirtualBinding]
Record = Union[SecretBinding, Secret, CredentialsBinding, WorkloadIdentity, Quota, VirtualBinding]

# Which record classes each mapping accepts. Raw payloads are parsed with the
# first class listed.
MAPPING_TYPES: dict[str, tuple[type, ...]] = {
    SECRET_BINDINGS: (SecretBinding,),
    SECRETS: (Secret,),
    CREDENTIALS_BINDINGS: (CredentialsBinding, VirtualBinding),
    WORKLOAD_IDENTITIES: (WorkloadIdentity,),
    QUOTAS: (Quota,),
}


def parse_record(mapping: str, raw: Any) -> Record:
    """Parse a raw backend object into the record type for *mapping*.

    The kind tag is forced by the chosen type; list endpoints often omit it.
    """
    try:
        record_type = MAPPING_TYPES[mapping][0]
    except KeyError:
        raise ValueError(f"Unknown store mapping: {mapping!r}") from None
    return record_type.from_dict(raw)


def is_virtual(record: Any) -> bool:
    return isinstance(record, VirtualBinding)
