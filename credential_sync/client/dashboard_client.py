"""Async credentials backend client using httpx.

Endpoint (relative to ``Settings.base_url``):

    GET  /namespaces/{ns}/cloudprovidercredentials
         → {secretBindings, secrets, credentialsBindings, workloadIdentities, quotas}
    POST /namespaces/{ns}/cloudprovidercredentials
         body {"method": "create" | "patch" | "delete", "params": {...}}
         → {binding?, secret?, workloadIdentity?}

Unlike a fire-and-forget tool client, every failure is raised: connection
errors, timeouts and error statuses become TransportError; undecodable or
wrongly shaped bodies become ValidationError. Responses are parsed into typed
records here, before any caller touches its store.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from credential_sync.client.config import Settings
from credential_sync.errors import TransportError, ValidationError
from credential_sync.store.models import (
    CREDENTIALS_BINDING,
    SECRET_BINDING,
    CredentialsBinding,
    Quota,
    Secret,
    SecretBinding,
    WorkloadIdentity,
)

logger = logging.getLogger("credential_sync.client")


# ---------------------------------------------------------------------------
# Request / response types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BindingRef:
    """Identifies a binding to delete."""

    kind: str
    namespace: str
    name: str

    def to_params(self) -> dict[str, str]:
        return {
            "bindingKind": self.kind,
            "bindingNamespace": self.namespace,
            "bindingName": self.name,
        }


def _parse_list(raw: Mapping[str, Any], field_name: str, record_type: type) -> list:
    items = raw.get(field_name)
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError(f"{field_name} must be a list, got {type(items).__name__}")
    return [record_type.from_dict(item) for item in items]


@dataclass
class CredentialsPayload:
    """One full fetch: the five collections for a namespace."""

    secret_bindings: list[SecretBinding] = field(default_factory=list)
    secrets: list[Secret] = field(default_factory=list)
    credentials_bindings: list[CredentialsBinding] = field(default_factory=list)
    workload_identities: list[WorkloadIdentity] = field(default_factory=list)
    quotas: list[Quota] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any) -> CredentialsPayload:
        if not isinstance(raw, Mapping):
            raise ValidationError(
                f"Credentials response must be an object, got {type(raw).__name__}"
            )
        return cls(
            secret_bindings=_parse_list(raw, "secretBindings", SecretBinding),
            secrets=_parse_list(raw, "secrets", Secret),
            credentials_bindings=_parse_list(raw, "credentialsBindings", CredentialsBinding),
            workload_identities=_parse_list(raw, "workloadIdentities", WorkloadIdentity),
            quotas=_parse_list(raw, "quotas", Quota),
        )


@dataclass
class MutationResult:
    """Authoritative records returned by a create or update call."""

    binding: SecretBinding | CredentialsBinding | None = None
    secret: Secret | None = None
    workload_identity: WorkloadIdentity | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> MutationResult:
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            raise ValidationError(f"Mutation response must be an object, got {type(raw).__name__}")

        binding: SecretBinding | CredentialsBinding | None = None
        raw_binding = raw.get("binding")
        if raw_binding is not None:
            kind = raw_binding.get("kind") if isinstance(raw_binding, Mapping) else None
            if kind == SECRET_BINDING:
                binding = SecretBinding.from_dict(raw_binding)
            elif kind == CREDENTIALS_BINDING:
                binding = CredentialsBinding.from_dict(raw_binding)
            else:
                raise ValidationError(f"Unsupported binding kind in response: {kind!r}")

        raw_secret = raw.get("secret")
        raw_wi = raw.get("workloadIdentity")
        return cls(
            binding=binding,
            secret=Secret.from_dict(raw_secret) if raw_secret is not None else None,
            workload_identity=(
                WorkloadIdentity.from_dict(raw_wi) if raw_wi is not None else None
            ),
        )

    @property
    def name(self) -> str:
        for record in (self.binding, self.secret, self.workload_identity):
            if record is not None:
                return record.metadata.name
        return ""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class DashboardClient:
    """Thin async wrapper around the cloud provider credentials endpoints."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.base_url,
            headers=settings.headers,
            timeout=httpx.Timeout(settings.timeout, connect=10.0),
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _path(namespace: str) -> str:
        return f"/namespaces/{namespace}/cloudprovidercredentials"

    async def _request(self, method: str, path: str, payload: dict | None = None) -> Any:
        try:
            r = await self._client.request(method, path, json=payload)
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("%s %s -> %s", method, path, e.response.status_code)
            raise TransportError(
                f"HTTP {e.response.status_code}",
                status_code=e.response.status_code,
                detail=e.response.text,
            ) from e
        except httpx.HTTPError as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise TransportError(str(e) or type(e).__name__) from e

        if not r.text.strip():
            return None
        try:
            return r.json()
        except ValueError as e:
            logger.error("%s %s returned a non-JSON body", method, path)
            raise ValidationError(f"{method} {path}: response is not valid JSON") from e

    async def _call(self, namespace: str, method: str, params: dict[str, Any]) -> Any:
        return await self._request(
            "POST", self._path(namespace), {"method": method, "params": params}
        )

    # ==================================================================
    # SYSTEM
    # ==================================================================

    async def ping(self) -> dict[str, Any]:
        try:
            r = await self._client.get("/healthz")
            return {"status": r.text.strip() or str(r.status_code)}
        except httpx.HTTPError as e:
            return {"error": str(e) or type(e).__name__}

    # ==================================================================
    # CLOUD PROVIDER CREDENTIALS
    # ==================================================================

    async def fetch_credentials(self, namespace: str) -> CredentialsPayload:
        data = await self._request("GET", self._path(namespace))
        return CredentialsPayload.from_dict(data)

    async def create_credential(
        self,
        namespace: str,
        binding: dict[str, Any],
        secret: dict[str, Any] | None = None,
    ) -> MutationResult:
        params: dict[str, Any] = {"binding": binding}
        if secret is not None:
            params["secret"] = secret
        return MutationResult.from_dict(await self._call(namespace, "create", params))

    async def update_credential(
        self,
        namespace: str,
        secret: dict[str, Any],
        binding: dict[str, Any] | None = None,
    ) -> MutationResult:
        params: dict[str, Any] = {"secret": secret}
        if binding is not None:
            params["binding"] = binding
        return MutationResult.from_dict(await self._call(namespace, "patch", params))

    async def delete_credential(self, namespace: str, ref: BindingRef) -> None:
        await self._call(namespace, "delete", ref.to_params())
