"""CredentialViews and ProviderTypeClassifier.

Tests:
- all_bindings = secret bindings followed by credentials bindings (explicit + virtual)
- explicit_credentials_bindings keeps only kind "CredentialsBinding"
- infrastructure / dns filtering via the classifier; shared credentials excluded from dns
- point lookups return None when absent
- views re-read the store (no caching)
- ProviderTypeClassifier.from_env parses comma-separated lists
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from credential_sync.classifiers import ProviderTypeClassifier
from credential_sync.store import CredentialViews, create_store
from credential_sync.store.models import SECRETS

PREFIX = "provider.shoot.gardener.cloud/"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _secret(ns, name, *capabilities) -> dict:
    return {
        "metadata": {
            "namespace": ns,
            "name": name,
            "uid": f"uid-{name}",
            "labels": {f"{PREFIX}{c}": "true" for c in capabilities},
        }
    }


def _secret_binding(ns, name, provider, secret_ns=None) -> dict:
    return {
        "metadata": {"namespace": ns, "name": name},
        "secretRef": {"name": f"{name}-secret", "namespace": secret_ns or ns},
        "provider": {"type": provider},
    }


def _credentials_binding(ns, name, provider, ref_ns=None) -> dict:
    return {
        "metadata": {"namespace": ns, "name": name},
        "credentialsRef": {"kind": "Secret", "name": f"{name}-secret", "namespace": ref_ns or ns},
        "provider": {"type": provider},
    }


def _populated_views(classifier=None) -> tuple:
    store = create_store()
    store.replace_all(
        secret_bindings=[
            _secret_binding("a", "sb-aws", "aws"),
            _secret_binding("a", "sb-trial", "aws-route53", secret_ns="garden"),
        ],
        credentials_bindings=[
            _credentials_binding("a", "cb-gcp", "gcp"),
            _credentials_binding("a", "cb-dns", "google-clouddns"),
        ],
        secrets=[_secret("a", "s-dns", "aws-route53")],
        quotas=[{"metadata": {"namespace": "a", "name": "trial"}}],
    )
    classifier = classifier or ProviderTypeClassifier(
        infrastructure_types=frozenset({"aws", "gcp"}),
        dns_types=frozenset({"aws-route53", "google-clouddns"}),
    )
    return store, CredentialViews(store, classifier)


def _names(bindings) -> list[tuple[str, str]]:
    return [(b.kind, b.metadata.name) for b in bindings]


# ---------------------------------------------------------------------------
# Binding lists
# ---------------------------------------------------------------------------


class TestAllBindings:
    def test_secret_bindings_first_then_credentials_bindings(self):
        _, views = _populated_views()
        assert _names(views.all_bindings) == [
            ("SecretBinding", "sb-aws"),
            ("SecretBinding", "sb-trial"),
            ("CredentialsBinding", "cb-gcp"),
            ("CredentialsBinding", "cb-dns"),
            ("Secret", "s-dns"),
        ]

    def test_explicit_only(self):
        _, views = _populated_views()
        assert _names(views.explicit_credentials_bindings) == [
            ("CredentialsBinding", "cb-gcp"),
            ("CredentialsBinding", "cb-dns"),
        ]

    def test_secret_bindings(self):
        _, views = _populated_views()
        assert [b.metadata.name for b in views.secret_bindings] == ["sb-aws", "sb-trial"]


class TestClassifiedViews:
    def test_infrastructure_bindings(self):
        _, views = _populated_views()
        assert _names(views.infrastructure_bindings) == [
            ("SecretBinding", "sb-aws"),
            ("CredentialsBinding", "cb-gcp"),
        ]

    def test_dns_bindings_exclude_shared_credentials(self):
        _, views = _populated_views()
        # sb-trial references a secret in another namespace and is excluded
        assert _names(views.dns_bindings) == [
            ("CredentialsBinding", "cb-dns"),
            ("Secret", "s-dns"),
        ]

    def test_empty_classifier_matches_nothing(self):
        _, views = _populated_views(ProviderTypeClassifier())
        assert views.infrastructure_bindings == []
        assert views.dns_bindings == []

    def test_bindings_by_name(self):
        _, views = _populated_views()
        assert views.bindings("all") == views.all_bindings
        assert views.bindings("dns") == views.dns_bindings
        assert views.bindings("explicit") == views.explicit_credentials_bindings
        with pytest.raises(ValueError):
            views.bindings("everything")


# ---------------------------------------------------------------------------
# Lookups and freshness
# ---------------------------------------------------------------------------


class TestLookups:
    def test_get_secret(self):
        _, views = _populated_views()
        assert views.get_secret("a", "s-dns").metadata.uid == "uid-s-dns"

    def test_get_quota(self):
        _, views = _populated_views()
        assert views.get_quota("a", "trial").kind == "Quota"
        assert [q.metadata.name for q in views.quotas] == ["trial"]

    def test_absent_returns_none(self):
        _, views = _populated_views()
        assert views.get_secret("a", "missing") is None
        assert views.get_workload_identity("a", "missing") is None
        assert views.get_quota("b", "trial") is None

    def test_views_follow_store_mutations(self):
        store, views = _populated_views()
        assert len(views.all_bindings) == 5

        store.synthesize(store.upsert(SECRETS, _secret("a", "s-new", "aws")))
        assert ("Secret", "s-new") in _names(views.infrastructure_bindings)

        store.reset()
        assert views.all_bindings == []


# ---------------------------------------------------------------------------
# ProviderTypeClassifier
# ---------------------------------------------------------------------------


class TestProviderTypeClassifier:
    def test_from_env(self):
        env = {
            "CREDENTIAL_SYNC_INFRA_PROVIDER_TYPES": "aws, gcp ,,azure",
            "CREDENTIAL_SYNC_DNS_PROVIDER_TYPES": "aws-route53",
        }
        with patch.dict(os.environ, env, clear=True):
            c = ProviderTypeClassifier.from_env()
        assert c.infrastructure_types == frozenset({"aws", "gcp", "azure"})
        assert c.dns_types == frozenset({"aws-route53"})

    def test_from_env_defaults_empty(self):
        with patch.dict(os.environ, {}, clear=True):
            c = ProviderTypeClassifier.from_env()
        assert c.infrastructure_types == frozenset()
        assert c.dns_types == frozenset()

    def test_virtual_binding_is_never_shared(self):
        store, views = _populated_views()
        virtual = [b for b in views.all_bindings if b.kind == "Secret"][0]
        assert ProviderTypeClassifier().is_shared_credential(virtual) is False
