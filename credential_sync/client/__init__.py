"""Credentials backend HTTP client (the store's data source)."""

from credential_sync.client.config import Settings
from credential_sync.client.dashboard_client import (
    BindingRef,
    CredentialsPayload,
    DashboardClient,
    MutationResult,
)

__all__ = ["BindingRef", "CredentialsPayload", "DashboardClient", "MutationResult", "Settings"]
