import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from mydoc.core.settings import settings, validate_settings
from mydoc.db.session import engine
from mydoc.models import Base
from mydoc.routers.appointments import router as appointments_router
from mydoc.routers.auth import router as auth_router
from mydoc.routers.patients import router as patients_router
from mydoc.routers.requests import router as requests_router
from mydoc.routers.slots import router as slots_router

app = FastAPI(title="MyDoc Scheduling API", version="0.1.0")
logger = logging.getLogger("mydoc.startup")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = request.headers.get("x-request-id")
    logger.exception("Unhandled server error", extra={"request_id": request_id})
    payload = {"detail": "Internal server error"}
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=500, content=payload)


@app.on_event("startup")
def startup():
    logging.basicConfig(level=settings.log_level.upper())
    validate_settings(settings)
    Base.metadata.create_all(bind=engine)
    logger.info("Schema ensured (env=%s, display timezone %s).", settings.app_env, settings.display_timezone)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(patients_router)
app.include_router(requests_router)
app.include_router(slots_router)
app.include_router(appointments_router)
