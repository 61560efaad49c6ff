"""FastAPI service exposing per-namespace cloud provider credentials.

Every namespace is served from its own in-memory NormalizedStore (see
session_pool.CredentialSessionPool). The store is filled by a full fetch on
first access and kept current by the mutation endpoints:

  GET    /namespaces/{ns}/credentials?view=…        derived binding list
  POST   /namespaces/{ns}/credentials/refresh       full fetch
  POST   /namespaces/{ns}/credentials               create binding (+ secret)
  PUT    /namespaces/{ns}/credentials               update secret
  DELETE /namespaces/{ns}/credentials/{kind}/{name} delete binding, then full fetch

  GET    /namespaces/{ns}/secrets/{name}            point lookups (404 if absent)
  GET    /namespaces/{ns}/workloadidentities/{name}
  GET    /namespaces/{ns}/quotas[/{name}]

  WS     /io                                        realtime notifications

Backend failures map to HTTP errors: upstream 4xx statuses are passed
through, everything else becomes 502.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Literal

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request, Security, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from credential_sync.client import BindingRef
from credential_sync.errors import CredentialSyncError, TransportError
from credential_sync.realtime import ChannelHub, OriginAllowList
from credential_sync.service import CredentialService
from credential_sync.session_pool import CredentialSessionPool
from credential_sync.store.views import VIEW_NAMES

logger = logging.getLogger("credential_sync.api")

# ---------------------------------------------------------------------------
# API key authentication (optional, enabled when CREDENTIAL_SYNC_API_KEY is set)
# ---------------------------------------------------------------------------

_bearer = HTTPBearer(auto_error=False)


def _verify_api_key(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> None:
    """Verify Bearer token matches CREDENTIAL_SYNC_API_KEY.

    If CREDENTIAL_SYNC_API_KEY is not set, all requests are allowed.
    """
    api_key = os.getenv("CREDENTIAL_SYNC_API_KEY")
    if not api_key:
        return
    if not credentials or credentials.credentials != api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


# ---------------------------------------------------------------------------
# Lifespan: build the session pool + realtime hub once, close on shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create shared state unless it was injected beforehand."""
    load_dotenv()

    hub = getattr(app.state, "hub", None)
    if hub is None:
        hub = ChannelHub(OriginAllowList.from_env())
        app.state.hub = hub

    pool = getattr(app.state, "pool", None)
    if pool is None:
        pool = CredentialSessionPool.from_env(notifier=hub)
        app.state.pool = pool

    logger.info(
        "Starting credential-sync | backend: %s | realtime origins: %s",
        os.getenv("CREDENTIAL_SYNC_API_ENDPOINT", "(default)"),
        hub.allow_list.origins or "any",
    )

    yield

    await pool.close()
    logger.info("Shutting down credential-sync")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

_rate_limit = os.getenv("RATE_LIMIT_MUTATIONS_PER_MIN", "30")
limiter = Limiter(key_func=get_remote_address)

app = FastAPI(
    title="Credential Sync API",
    description=(
        "Per-namespace view over cloud provider credentials: secret bindings, "
        "credentials bindings, secrets, workload identities and quotas, with "
        "virtual bindings synthesized from provider capability labels."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

_CORS_ORIGINS: list[str] = [
    o.strip()
    for o in os.environ.get("CORS_ORIGINS", "http://localhost:8080,http://localhost:3000").split(",")
    if o.strip()
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def _credential_sync_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Translate backend failures into HTTP responses."""
    status_code = 502
    detail = str(exc)
    if isinstance(exc, TransportError):
        if exc.status_code is not None and 400 <= exc.status_code < 500:
            status_code = exc.status_code
        if exc.detail:
            detail = f"{exc}: {exc.detail}"
    logger.warning("%s %s failed: %s", request.method, request.url.path, detail)
    return JSONResponse(status_code=status_code, content={"detail": detail})


app.add_exception_handler(CredentialSyncError, _credential_sync_error_handler)


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class CreateCredentialRequest(BaseModel):
    """Request body for POST /namespaces/{ns}/credentials."""

    binding: dict[str, Any] = Field(
        ...,
        description="SecretBinding or CredentialsBinding manifest to create.",
    )
    secret: dict[str, Any] | None = Field(
        None,
        description="Secret manifest to create alongside the binding.",
    )


class UpdateCredentialRequest(BaseModel):
    """Request body for PUT /namespaces/{ns}/credentials."""

    secret: dict[str, Any] = Field(..., description="Secret manifest with updated data/labels.")
    binding: dict[str, Any] | None = Field(
        None,
        description="Binding that references the secret (used for naming only).",
    )


class BindingListResponse(BaseModel):
    namespace: str
    view: str
    count: int
    bindings: list[dict[str, Any]]


class QuotaListResponse(BaseModel):
    namespace: str
    count: int
    quotas: list[dict[str, Any]]


class SyncResponse(BaseModel):
    namespace: str
    duration_ms: float
    counts: dict[str, int] = Field(default_factory=dict)
    virtual_bindings: int = 0


class MutationResponse(BaseModel):
    status: Literal["created", "updated", "deleted"]
    name: str
    binding: dict[str, Any] | None = None
    secret: dict[str, Any] | None = None
    workload_identity: dict[str, Any] | None = None


class SessionSummary(BaseModel):
    namespace: str
    loaded: bool
    counts: dict[str, int]
    last_sync_ms: float | None = None


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_pool(request: Request) -> CredentialSessionPool:
    return request.app.state.pool


def _get_service(request: Request, namespace: str) -> CredentialService:
    try:
        return _get_pool(request).get(namespace)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _to_dict(record: Any) -> dict[str, Any] | None:
    return record.to_dict() if record is not None else None


# ---------------------------------------------------------------------------
# Routes: system
# ---------------------------------------------------------------------------


@app.get("/health", tags=["system"], dependencies=[Depends(_verify_api_key)])
async def health(request: Request) -> dict:
    """Health check. Verifies the API and the credentials backend are both up."""
    result = await _get_pool(request).client.ping()
    backend_ok = "error" not in result
    return {
        "api": "ok",
        "backend": "ok" if backend_ok else "unreachable",
        "backend_detail": result,
    }


@app.get(
    "/sessions",
    response_model=list[SessionSummary],
    tags=["system"],
    dependencies=[Depends(_verify_api_key)],
)
async def list_sessions(request: Request) -> list[SessionSummary]:
    """List namespaces with an in-memory session and their store sizes."""
    pool = _get_pool(request)
    summaries = []
    for namespace in pool.namespaces:
        service = pool.get(namespace)
        last = service.last_sync
        summaries.append(SessionSummary(
            namespace=namespace,
            loaded=service.loaded,
            counts=service.store.counts(),
            last_sync_ms=last.duration_ms if last is not None else None,
        ))
    return summaries


# ---------------------------------------------------------------------------
# Routes: credentials
# ---------------------------------------------------------------------------


@app.post(
    "/namespaces/{namespace}/credentials/refresh",
    response_model=SyncResponse,
    tags=["credentials"],
    dependencies=[Depends(_verify_api_key)],
)
async def refresh_credentials(namespace: str, request: Request) -> SyncResponse:
    """Re-fetch every collection for the namespace and rebuild its store."""
    service = _get_service(request, namespace)
    metrics = await service.fetch_all()
    return SyncResponse(
        namespace=namespace,
        duration_ms=metrics.duration_ms,
        counts=metrics.counts,
        virtual_bindings=metrics.virtual_bindings,
    )


@app.get(
    "/namespaces/{namespace}/credentials",
    response_model=BindingListResponse,
    tags=["credentials"],
    dependencies=[Depends(_verify_api_key)],
)
async def list_credentials(
    namespace: str,
    request: Request,
    view: str = "all",
) -> BindingListResponse:
    """Return one of the derived binding lists (all, infrastructure, dns, explicit, secretbindings)."""
    if view not in VIEW_NAMES:
        raise HTTPException(
            status_code=400, detail=f"Unknown view {view!r}; expected one of {list(VIEW_NAMES)}"
        )
    service = _get_service(request, namespace)
    await service.ensure_loaded()
    bindings = service.views.bindings(view)
    return BindingListResponse(
        namespace=namespace,
        view=view,
        count=len(bindings),
        bindings=[b.to_dict() for b in bindings],
    )


@app.post(
    "/namespaces/{namespace}/credentials",
    response_model=MutationResponse,
    tags=["credentials"],
    dependencies=[Depends(_verify_api_key)],
)
@limiter.limit(f"{_rate_limit}/minute")
async def create_credential(
    namespace: str, request: Request, body: CreateCredentialRequest
) -> MutationResponse:
    """Create a binding (and optionally its secret) and apply the stored result."""
    service = _get_service(request, namespace)
    result = await service.create_binding(body.model_dump())
    return MutationResponse(
        status="created",
        name=result.name,
        binding=_to_dict(result.binding),
        secret=_to_dict(result.secret),
        workload_identity=_to_dict(result.workload_identity),
    )


@app.put(
    "/namespaces/{namespace}/credentials",
    response_model=MutationResponse,
    tags=["credentials"],
    dependencies=[Depends(_verify_api_key)],
)
@limiter.limit(f"{_rate_limit}/minute")
async def update_credential(
    namespace: str, request: Request, body: UpdateCredentialRequest
) -> MutationResponse:
    """Update a credential's secret and re-derive its virtual bindings."""
    service = _get_service(request, namespace)
    result = await service.update_binding(body.model_dump())
    return MutationResponse(
        status="updated",
        name=result.name,
        binding=_to_dict(result.binding),
        secret=_to_dict(result.secret),
        workload_identity=_to_dict(result.workload_identity),
    )


@app.delete(
    "/namespaces/{namespace}/credentials/{kind}/{name}",
    response_model=MutationResponse,
    tags=["credentials"],
    dependencies=[Depends(_verify_api_key)],
)
@limiter.limit(f"{_rate_limit}/minute")
async def delete_credential(
    namespace: str,
    kind: Literal["SecretBinding", "CredentialsBinding"],
    name: str,
    request: Request,
) -> MutationResponse:
    """Delete a binding, then rebuild the namespace store from a full fetch."""
    service = _get_service(request, namespace)
    await service.delete_binding(BindingRef(kind=kind, namespace=namespace, name=name))
    return MutationResponse(status="deleted", name=name)


# ---------------------------------------------------------------------------
# Routes: point lookups
# ---------------------------------------------------------------------------


@app.get("/namespaces/{namespace}/secrets/{name}", tags=["lookups"], dependencies=[Depends(_verify_api_key)])
async def get_secret(namespace: str, name: str, request: Request) -> dict:
    service = _get_service(request, namespace)
    await service.ensure_loaded()
    secret = service.views.get_secret(namespace, name)
    if secret is None:
        raise HTTPException(status_code=404, detail=f"Secret '{namespace}/{name}' not found.")
    return secret.to_dict()


@app.get(
    "/namespaces/{namespace}/workloadidentities/{name}",
    tags=["lookups"],
    dependencies=[Depends(_verify_api_key)],
)
async def get_workload_identity(namespace: str, name: str, request: Request) -> dict:
    service = _get_service(request, namespace)
    await service.ensure_loaded()
    wi = service.views.get_workload_identity(namespace, name)
    if wi is None:
        raise HTTPException(
            status_code=404, detail=f"WorkloadIdentity '{namespace}/{name}' not found."
        )
    return wi.to_dict()


@app.get(
    "/namespaces/{namespace}/quotas",
    response_model=QuotaListResponse,
    tags=["lookups"],
    dependencies=[Depends(_verify_api_key)],
)
async def list_quotas(namespace: str, request: Request) -> QuotaListResponse:
    service = _get_service(request, namespace)
    await service.ensure_loaded()
    quotas = service.views.quotas
    return QuotaListResponse(
        namespace=namespace, count=len(quotas), quotas=[q.to_dict() for q in quotas]
    )


@app.get("/namespaces/{namespace}/quotas/{name}", tags=["lookups"], dependencies=[Depends(_verify_api_key)])
async def get_quota(namespace: str, name: str, request: Request) -> dict:
    service = _get_service(request, namespace)
    await service.ensure_loaded()
    quota = service.views.get_quota(namespace, name)
    if quota is None:
        raise HTTPException(status_code=404, detail=f"Quota '{namespace}/{name}' not found.")
    return quota.to_dict()


# ---------------------------------------------------------------------------
# Realtime channel
# ---------------------------------------------------------------------------


@app.websocket("/io")
async def realtime_channel(websocket: WebSocket) -> None:
    """Origin-checked notification channel. Replies "pong" to "ping"."""
    hub: ChannelHub = websocket.app.state.hub
    if not await hub.connect(websocket):
        return
    try:
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.debug("Realtime client disconnected")
    finally:
        hub.disconnect(websocket)


# ---------------------------------------------------------------------------
# Entry point (for uvicorn programmatic launch)
# ---------------------------------------------------------------------------


def serve(host: str = "0.0.0.0", port: int = 8000, reload: bool = False) -> None:
    """Launch the FastAPI server via uvicorn."""
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        "credential_sync.api:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    serve()
