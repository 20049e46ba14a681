import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from classgrid.api.routes import health, roster, timetable
from classgrid.core.config import get_settings
from classgrid.core.exceptions import AppError
from classgrid.core.middleware import RequestLoggingMiddleware, RequestSizeLimitMiddleware
from classgrid.db.bootstrap import ensure_runtime_schema
from classgrid.db.session import engine
from classgrid.services.locks import DEFAULT_SCOPE_LOCKS

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    logging.getLogger("classgrid").setLevel(settings.log_level)
    if settings.auto_create_schema:
        ensure_runtime_schema(engine)
    yield


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.state.scope_locks = DEFAULT_SCOPE_LOCKS
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_size_bytes)
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(timetable.router, prefix=f"{settings.api_prefix}/timetable", tags=["timetable"])
app.include_router(roster.router, prefix=f"{settings.api_prefix}/roster", tags=["roster"])
