"""HTTP routes — views, mutations, lookups and error mapping.

The session pool is injected on ``app.state`` with a mocked DashboardClient,
so no backend is contacted.

Tests:
  1. GET credentials loads the store on first access and returns the view
  2. unknown view → 400
  3. refresh returns sync counts
  4. create / update / delete responses and store effects
  5. upstream 4xx passed through, 5xx and malformed bodies → 502
  6. point lookups → 404 when absent
  7. CREDENTIAL_SYNC_API_KEY enforces Bearer auth
  8. /sessions lists per-namespace stores
"""

from __future__ import annotations

import os
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from credential_sync.api import app, limiter
from credential_sync.client import CredentialsPayload, MutationResult
from credential_sync.errors import TransportError, ValidationError
from credential_sync.realtime import ChannelHub
from credential_sync.session_pool import CredentialSessionPool
from credential_sync.store.models import Secret, SecretBinding

AWS = "provider.shoot.gardener.cloud/aws"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _secret(name="s1", labels=None) -> Secret:
    return Secret.from_dict(
        {"metadata": {"namespace": "a", "name": name, "uid": f"uid-{name}", "labels": labels or {}}}
    )


def _secret_binding(name="sb1", secret="s1") -> SecretBinding:
    return SecretBinding.from_dict({
        "metadata": {"namespace": "a", "name": name, "uid": f"uid-{name}"},
        "secretRef": {"name": secret, "namespace": "a"},
        "provider": {"type": "aws"},
    })


@pytest.fixture
def backend() -> AsyncMock:
    client = AsyncMock()
    client.fetch_credentials = AsyncMock(return_value=CredentialsPayload(
        secret_bindings=[_secret_binding()],
        secrets=[_secret(labels={AWS: "true"})],
    ))
    client.ping = AsyncMock(return_value={"status": "ok"})
    return client


@pytest.fixture
def api(backend):
    limiter.reset()
    hub = ChannelHub()
    app.state.hub = hub
    app.state.pool = CredentialSessionPool(backend, notifier=hub)
    with patch.dict(os.environ, {}, clear=False):
        os.environ.pop("CREDENTIAL_SYNC_API_KEY", None)
        yield TestClient(app)


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


class TestListCredentials:
    def test_first_access_loads_store(self, api, backend):
        r = api.get("/namespaces/a/credentials")
        assert r.status_code == 200
        body = r.json()
        assert body["view"] == "all"
        assert body["count"] == 2
        assert [b["kind"] for b in body["bindings"]] == ["SecretBinding", "Secret"]
        assert body["bindings"][1]["metadata"]["uid"] == "uid-s1-aws"

        api.get("/namespaces/a/credentials")
        backend.fetch_credentials.assert_awaited_once_with("a")

    def test_explicit_view(self, api):
        r = api.get("/namespaces/a/credentials", params={"view": "explicit"})
        assert r.status_code == 200
        assert r.json()["bindings"] == []

    def test_unknown_view(self, api, backend):
        r = api.get("/namespaces/a/credentials", params={"view": "everything"})
        assert r.status_code == 400
        backend.fetch_credentials.assert_not_awaited()

    def test_refresh(self, api):
        r = api.post("/namespaces/a/credentials/refresh")
        assert r.status_code == 200
        body = r.json()
        assert body["counts"]["secretBindings"] == 1
        assert body["counts"]["credentialsBindings"] == 1
        assert body["virtual_bindings"] == 1

    def test_fetch_failure_maps_to_502(self, api, backend):
        backend.fetch_credentials = AsyncMock(side_effect=TransportError("HTTP 500", status_code=500))
        r = api.get("/namespaces/a/credentials")
        assert r.status_code == 502

    def test_malformed_payload_maps_to_502(self, api, backend):
        backend.fetch_credentials = AsyncMock(side_effect=ValidationError("not JSON"))
        r = api.post("/namespaces/a/credentials/refresh")
        assert r.status_code == 502
        assert "not JSON" in r.json()["detail"]

    def test_sessions(self, api):
        api.get("/namespaces/a/credentials")
        r = api.get("/sessions")
        assert r.status_code == 200
        [summary] = r.json()
        assert summary["namespace"] == "a"
        assert summary["loaded"] is True
        assert summary["counts"]["secrets"] == 1


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


class TestMutations:
    def test_create(self, api, backend):
        backend.create_credential = AsyncMock(return_value=MutationResult(
            binding=_secret_binding(name="sb2", secret="s2"),
            secret=_secret(name="s2", labels={AWS: "true"}),
        ))
        r = api.post(
            "/namespaces/a/credentials",
            json={"binding": {"metadata": {"name": "sb2"}}, "secret": {"metadata": {"name": "s2"}}},
        )
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "created"
        assert body["name"] == "sb2"
        assert body["binding"]["kind"] == "SecretBinding"

        store = app.state.pool.get("a").store
        assert "a/s2/aws" in store.keys("credentialsBindings")

    def test_create_upstream_conflict_passed_through(self, api, backend):
        backend.create_credential = AsyncMock(
            side_effect=TransportError("HTTP 409", status_code=409, detail="already exists")
        )
        r = api.post("/namespaces/a/credentials", json={"binding": {"metadata": {"name": "sb1"}}})
        assert r.status_code == 409
        assert r.json()["detail"] == "HTTP 409: already exists"

    def test_create_requires_binding(self, api):
        r = api.post("/namespaces/a/credentials", json={"secret": {}})
        assert r.status_code == 422

    def test_update(self, api, backend):
        api.get("/namespaces/a/credentials")
        backend.update_credential = AsyncMock(return_value=MutationResult(secret=_secret()))
        r = api.put(
            "/namespaces/a/credentials",
            json={"secret": {"metadata": {"name": "s1"}}, "binding": {"metadata": {"name": "sb1"}}},
        )
        assert r.status_code == 200
        assert r.json()["status"] == "updated"
        # Labels were removed by the backend: the virtual binding is gone
        store = app.state.pool.get("a").store
        assert store.keys("credentialsBindings") == []

    def test_delete(self, api, backend):
        r = api.delete("/namespaces/a/credentials/SecretBinding/sb1")
        assert r.status_code == 200
        assert r.json() == {
            "status": "deleted",
            "name": "sb1",
            "binding": None,
            "secret": None,
            "workload_identity": None,
        }
        ref = backend.delete_credential.await_args.args[1]
        assert (ref.kind, ref.namespace, ref.name) == ("SecretBinding", "a", "sb1")
        backend.fetch_credentials.assert_awaited_once_with("a")

    def test_delete_unknown_kind(self, api):
        r = api.delete("/namespaces/a/credentials/Secret/s1")
        assert r.status_code == 422


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


class TestLookups:
    def test_secret_found(self, api):
        r = api.get("/namespaces/a/secrets/s1")
        assert r.status_code == 200
        assert r.json()["kind"] == "Secret"

    def test_secret_missing(self, api):
        assert api.get("/namespaces/a/secrets/nope").status_code == 404

    def test_workload_identity_missing(self, api):
        assert api.get("/namespaces/a/workloadidentities/nope").status_code == 404

    def test_quotas(self, api):
        r = api.get("/namespaces/a/quotas")
        assert r.status_code == 200
        assert r.json()["count"] == 0
        assert api.get("/namespaces/a/quotas/trial").status_code == 404


# ---------------------------------------------------------------------------
# Auth / health
# ---------------------------------------------------------------------------


class TestAuth:
    def test_api_key_required_when_set(self, api):
        with patch.dict(os.environ, {"CREDENTIAL_SYNC_API_KEY": "k"}):
            assert api.get("/namespaces/a/credentials").status_code == 401
            r = api.get("/namespaces/a/credentials", headers={"Authorization": "Bearer k"})
            assert r.status_code == 200

    def test_health(self, api):
        r = api.get("/health")
        assert r.status_code == 200
        assert r.json()["backend"] == "ok"
