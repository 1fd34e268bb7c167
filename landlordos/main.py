from __future__ import annotations

from fastapi import FastAPI, HTTPException

from landlordos.api.routers import (
    auth,
    dashboard,
    expenses,
    leases,
    maintenance,
    organization,
    properties,
    reminders,
    tenants,
)
from landlordos.infra.db import check_db_ready
from landlordos.infra.logging_config import setup_logger

setup_logger()

app = FastAPI(
    title="landlordos",
    description="Multi-tenant property management API with role and property scoped access.",
    version="0.1.0",
)

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(organization.router, prefix="/api/organization", tags=["organization"])
app.include_router(properties.router, prefix="/api/properties", tags=["properties"])
app.include_router(tenants.router, prefix="/api/tenants", tags=["tenants"])
app.include_router(leases.router, prefix="/api/leases", tags=["leases"])
app.include_router(expenses.router, prefix="/api/expenses", tags=["expenses"])
app.include_router(maintenance.router, prefix="/api/maintenance", tags=["maintenance"])
app.include_router(reminders.router, prefix="/api/reminders", tags=["reminders"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    checks = {"db": "ok" if db_ok else "fail"}
    if not db_ok:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
