import logging

from fastapi import FastAPI
from sqlalchemy.exc import OperationalError

from studioops.exceptions import LicenseReadError
from studioops.routers import billing
from studioops.routers import coaches
from studioops.routers import export
from studioops.routers import imports
from studioops.routers import license
from studioops.routers import members
from studioops.routers import payments
from studioops.routers import sessions

logging.basicConfig(level=logging.INFO)

app = FastAPI(title="studio-ops API")

# Database outages answer 503 with "retryable": true, never a bare 500
app.add_exception_handler(LicenseReadError, license.read_failure_handler)
app.add_exception_handler(OperationalError, license.read_failure_handler)

app.include_router(license.router)
app.include_router(members.router)
app.include_router(coaches.router)
app.include_router(sessions.router)
app.include_router(payments.router)
app.include_router(billing.router)
app.include_router(imports.router)
app.include_router(export.router)


@app.get("/health")
def health():
    return {"status": "ok"}
