#!/usr/bin/env python3
"""
SlotPool - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Initializes modules
3. Runs the API server

All business logic is in the modules, following black box principles.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis
import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from slotpool import __version__
from slotpool.logging_config import configure_logging, get_logging_config

# Import modules through their black box interfaces
from slotpool.modules.admission import AdmissionEngine
from slotpool.modules.audit import AuditLog
from slotpool.modules.config import get_config
from slotpool.modules.errors import CapacityExhaustedError, SlotPoolError
from slotpool.modules.lifecycle import LifecycleManager
from slotpool.modules.models import (
    AddBackendRequest,
    AssignSessionRequest,
    AssignmentResponse,
    AuditLogResponse,
    BackendListResponse,
    BackendStatusResponse,
    BulkTerminationResponse,
    MessageResponse,
    ReconcileResponse,
    SetEnabledRequest,
    TerminationResponse,
    UpdateBackendRequest,
)
from slotpool.modules.monitoring import MonitoringModule
from slotpool.modules.registry import BackendRegistry, ensure_default_backend
from slotpool.modules.session import SessionStore
from slotpool.modules.storage import StorageModule

# Get configuration
config = get_config()

configure_logging(config.get("log_level"))
logger = logging.getLogger("slotpool.main")

# Module instances (initialized at startup)
storage: Optional[StorageModule] = None
redis_client: Optional[redis.Redis] = None
audit_log: Optional[AuditLog] = None
registry: Optional[BackendRegistry] = None
session_store: Optional[SessionStore] = None
admission: Optional[AdmissionEngine] = None
lifecycle: Optional[LifecycleManager] = None
monitoring: Optional[MonitoringModule] = None


def init_modules(client: redis.Redis) -> None:
    """Wire every module to a Redis client."""
    global redis_client, audit_log, registry, session_store, admission, lifecycle, monitoring

    redis_client = client
    audit_log = AuditLog(client, max_entries=config.get("audit_log_max_entries"))
    registry = BackendRegistry(client, audit=audit_log)
    session_store = SessionStore(client, default_ttl=config.get("session_ttl"))
    admission = AdmissionEngine(
        registry,
        session_store,
        audit=audit_log,
        strict_capacity=config.get("strict_capacity"),
    )
    lifecycle = LifecycleManager(registry, session_store, audit=audit_log)
    monitoring = MonitoringModule(registry, session_store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle - initialize and cleanup resources.
    """
    global storage

    logger.info("Starting SlotPool API...")

    if storage is None:
        storage = StorageModule.from_config(config)
    init_modules(await storage.connect())

    # Seed once before serving traffic
    await ensure_default_backend(registry, config)

    if config.get("strict_capacity"):
        logger.info("Strict capacity enforcement enabled")

    logger.info("SlotPool API started successfully")

    yield

    logger.info("Shutting down SlotPool API...")
    await storage.disconnect()
    logger.info("SlotPool API shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="SlotPool API",
    description="SlotPool - Session load balancing across API slots",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.get("cors_origins"),
    allow_methods=["*"],
    allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
)


def _require(module):
    if module is None:
        raise HTTPException(503, "Service not initialized")
    return module


# Session Endpoints


@app.post("/api/sessions", response_model=AssignmentResponse)
async def assign_session(request: AssignSessionRequest):
    """
    Assign a backend to a requester, reusing a live session if there is one.

    Returns:
        200: Assignment (reused=true when an existing session was returned)
        400: requester_id missing
        503: All backends at capacity (Retry-After set)
    """
    engine = _require(admission)
    assignment = await engine.assign(request.requester_id)
    return AssignmentResponse(
        backend_id=assignment.backend_id,
        credential=assignment.credential,
        target_id=assignment.target_id,
        expires_at=assignment.expires_at,
        reused=assignment.reused,
    )


@app.get("/api/sessions/{requester_id}")
async def get_session(requester_id: str):
    """
    Get a requester's current session.

    Returns:
        200: Session record
        404: No live session
    """
    engine = _require(admission)
    record = await engine.lookup(requester_id)
    if record is None:
        raise HTTPException(404, "No active session found for this user.")
    return record.model_dump(mode="json")


@app.delete("/api/sessions/{requester_id}", response_model=TerminationResponse)
async def end_session(requester_id: str):
    """
    End a requester's session. Ending a missing session is not an error.

    Returns:
        200: Termination result (ended=false if there was no session)
        500: Session record was corrupt (it has been removed)
    """
    manager = _require(lifecycle)
    result = await manager.terminate(requester_id)
    return TerminationResponse(
        requester_id=result.requester_id, ended=result.ended, message=result.message
    )


# Backend Management Endpoints


@app.get("/api/backends", response_model=BackendListResponse)
async def list_backends():
    backends = await _require(registry).list()
    return BackendListResponse(backends=[b.model_dump() for b in backends], count=len(backends))


@app.post("/api/backends", status_code=201)
async def add_backend(request: AddBackendRequest):
    """
    Register a backend.

    Returns:
        201: Backend added
        400: Missing fields or capacity <= 0
        409: Backend id already exists
    """
    backend = await _require(registry).add(
        request.id,
        request.credential,
        request.target_id,
        request.capacity,
        session_ttl=request.session_ttl,
    )
    return {"message": "Backend added successfully", "backend": backend.model_dump()}


@app.patch("/api/backends/{backend_id}")
async def update_backend(backend_id: str, request: UpdateBackendRequest):
    """
    Update the given fields of a backend.

    Returns:
        200: Backend updated
        400: Resulting backend would be invalid
        404: Backend not found
    """
    backend = await _require(registry).update(backend_id, **request.model_dump(exclude_unset=True))
    return {"message": "Backend updated successfully", "backend": backend.model_dump()}


@app.put("/api/backends/{backend_id}/enabled")
async def set_backend_enabled(backend_id: str, request: SetEnabledRequest):
    backend = await _require(registry).set_enabled(backend_id, request.enabled)
    state = "enabled" if backend.enabled else "disabled"
    return {"message": f"Backend {state}", "backend": backend.model_dump()}


@app.delete("/api/backends/{backend_id}", response_model=MessageResponse)
async def remove_backend(backend_id: str):
    """
    Remove a backend and its counters.

    Sessions still bound to it are left to expire; the next admission
    for such a requester discards the session and assigns a new backend.
    """
    await _require(registry).remove(backend_id)
    return MessageResponse(message="Backend removed successfully")


@app.delete("/api/backends/{backend_id}/sessions", response_model=BulkTerminationResponse)
async def end_backend_sessions(backend_id: str):
    result = await _require(lifecycle).terminate_all_for_backend(backend_id)
    return BulkTerminationResponse(
        backend_id=result.backend_id, cleared=result.cleared, message=result.message
    )


@app.post("/api/backends/{backend_id}/reconcile", response_model=ReconcileResponse)
async def reconcile_backend(backend_id: str):
    """Drop expired members from a backend's accounting."""
    result = await _require(lifecycle).reconcile(backend_id)
    return ReconcileResponse(
        backend_id=result.backend_id, pruned=result.pruned, active_count=result.active_count
    )


# Monitoring Endpoints


@app.get("/api/monitoring", response_model=list[BackendStatusResponse])
async def get_monitoring():
    snapshots = await _require(monitoring).snapshot()
    return [BackendStatusResponse(**s.to_dict()) for s in snapshots]


@app.get("/api/audit", response_model=AuditLogResponse)
async def read_audit(limit: int = Query(100, ge=1, le=1000)):
    events = await _require(audit_log).read(limit)
    return AuditLogResponse(events=events, count=len(events))


@app.delete("/api/audit", response_model=MessageResponse)
async def clear_audit():
    await _require(audit_log).clear()
    return MessageResponse(message="Audit log cleared")


# Health Endpoints


@app.get("/healthz")
async def healthz():
    """
    Minimal health check endpoint for readiness/liveness probes.

    Returns:
        200: Service is running
    """
    return {"status": "ok"}


@app.get("/health")
async def health_check():
    """
    Health check including Redis connectivity.

    Returns:
        200: Service healthy
        503: Service unhealthy
    """
    try:
        if redis_client is not None:
            await redis_client.ping()
            redis_status = "connected"
        else:
            redis_status = "disconnected"
    except (redis.ConnectionError, redis.TimeoutError) as e:
        logger.error(f"Health check failed: {e}")
        redis_status = "disconnected"

    modules_ready = all([registry, session_store, admission, lifecycle, audit_log, monitoring])

    body = {
        "status": "healthy" if redis_status == "connected" and modules_ready else "unhealthy",
        "redis": redis_status,
        "modules": "initialized" if modules_ready else "not initialized",
        "version": __version__,
    }
    if body["status"] == "healthy":
        return body
    return JSONResponse(status_code=503, content=body)


# Error handlers


@app.exception_handler(SlotPoolError)
async def slotpool_error_handler(request: Request, exc: SlotPoolError):
    """Map domain errors to HTTP responses."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message}")
    headers = None
    if isinstance(exc, CapacityExhaustedError) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": type(exc).__name__, "message": exc.message},
        headers=headers,
    )


@app.exception_handler(redis.ConnectionError)
async def redis_error_handler(request: Request, exc: redis.ConnectionError):
    """Handle Redis connection errors."""
    logger.error(f"Redis connection error: {exc}")
    return JSONResponse(status_code=503, content={"error": "Database connection failed"})


@app.exception_handler(redis.TimeoutError)
async def redis_timeout_handler(request: Request, exc: redis.TimeoutError):
    logger.error(f"Redis timeout: {exc}")
    return JSONResponse(status_code=503, content={"error": "Database connection failed"})


def run() -> None:
    """Console entry point."""
    uvicorn.run(
        "slotpool.main:app",
        host=config.get("host"),
        port=config.get("port"),
        log_level=config.get("log_level").lower(),
        reload=config.get("debug"),
        log_config=get_logging_config(config.get("log_level")),
    )


if __name__ == "__main__":
    run()
