from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jobletter.api.routes import router as api_router
from jobletter.config import get_settings
from jobletter.db.init import init_database
from jobletter.errors import ClassifiedError, ErrorKind
from jobletter.logging_config import configure_logging

ERROR_STATUS = {
    ErrorKind.VALIDATION_REJECTED: 422,
    ErrorKind.GENERATION_TIMEOUT: 504,
    ErrorKind.CANCELLED: 409,
}


def status_for(error: ClassifiedError) -> int:
    return ERROR_STATUS.get(error.kind, 502)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging()

    app = FastAPI(title=settings.app_name)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def _startup() -> None:
        init_database()

    @app.exception_handler(ClassifiedError)
    async def _classified_error(request: Request, exc: ClassifiedError) -> JSONResponse:
        return JSONResponse({"error": exc.to_dict()}, status_code=status_for(exc))

    @app.get("/health")
    def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    app.include_router(api_router)
    return app
