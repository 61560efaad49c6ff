"""Per-namespace credential sessions.

Every namespace gets its own CredentialService with its own NormalizedStore.
Switching namespace never reuses another namespace's data; a new session
starts empty and is populated by its first fetch_all.

All sessions share one DashboardClient (one connection pool), one
classifier and one notification sink.

Usage:
    pool = CredentialSessionPool.from_env()
    service = pool.get("garden-dev")   # created lazily
    await service.ensure_loaded()
    ...
    await pool.close()
"""

from __future__ import annotations

import logging

from credential_sync.classifiers import BindingClassifier, ProviderTypeClassifier
from credential_sync.client import DashboardClient, Settings
from credential_sync.notifications import LoggingNotificationSink, NotificationSink
from credential_sync.service import CredentialService

logger = logging.getLogger("credential_sync.session_pool")


class CredentialSessionPool:
    """CredentialService instances keyed by namespace.

    Lifecycle:
        pool = CredentialSessionPool(client, classifier, notifier)
        service = pool.get("garden-dev")
        ...
        await pool.close()
    """

    def __init__(
        self,
        client: DashboardClient,
        classifier: BindingClassifier | None = None,
        notifier: NotificationSink | None = None,
    ) -> None:
        self._client = client
        self._classifier = classifier if classifier is not None else ProviderTypeClassifier()
        self._notifier = notifier if notifier is not None else LoggingNotificationSink()
        self._sessions: dict[str, CredentialService] = {}

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls, notifier: NotificationSink | None = None) -> "CredentialSessionPool":
        """Build the pool from CREDENTIAL_SYNC_* environment variables."""
        settings = Settings.from_env()
        logger.info("CredentialSessionPool: backend at %s", settings.api_endpoint)
        return cls(
            DashboardClient(settings),
            classifier=ProviderTypeClassifier.from_env(),
            notifier=notifier,
        )

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def get(self, namespace: str) -> CredentialService:
        """Return the session for *namespace*, creating an empty one if needed."""
        if not namespace:
            raise ValueError("namespace must be a non-empty string")
        service = self._sessions.get(namespace)
        if service is None:
            service = CredentialService(
                self._client,
                namespace,
                classifier=self._classifier,
                notifier=self._notifier,
            )
            self._sessions[namespace] = service
            logger.debug("CredentialSessionPool: new session for namespace %r", namespace)
        return service

    def drop(self, namespace: str) -> bool:
        """Forget the session for *namespace*. Returns False if there was none."""
        return self._sessions.pop(namespace, None) is not None

    @property
    def namespaces(self) -> list[str]:
        return list(self._sessions.keys())

    @property
    def client(self) -> DashboardClient:
        return self._client

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Drop all sessions and close the shared client."""
        self._sessions.clear()
        try:
            await self._client.close()
        except Exception as e:
            logger.warning("Error closing credentials client: %s", e)
