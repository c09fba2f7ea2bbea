# src/bioren_backend/app/main.py
import logging
import os
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import PlainTextResponse

# Load .env before settings are read
load_dotenv()

from bioren_backend.app.core.logging import setup_logging
setup_logging()

from bioren_backend.app.api.routes.auth import router as auth_router
from bioren_backend.app.core.config import Settings
from bioren_backend.app.core.errors import StorageError, Unauthorized
from bioren_backend.app.services.directory import UserDirectoryService

_log = logging.getLogger("bioren.api")

UNAUTHORIZED_BODY = "invalid or expired token"
MALFORMED_BODY    = "malformed request body"
INTERNAL_BODY     = "internal error"


# ------------------------
# Error -> response mapping (plain text, no provider detail)
# ------------------------
async def _unauthorized(_: Request, ex: Unauthorized):
    return PlainTextResponse(UNAUTHORIZED_BODY, status_code=401)

async def _validation_failed(request: Request, ex: RequestValidationError):
    _log.info("rejected %s %s: %s", request.method, request.url.path, ex.errors())
    return PlainTextResponse(MALFORMED_BODY, status_code=400)

async def _storage_failed(request: Request, ex: StorageError):
    _log.error("storage failure on %s %s: %s", request.method, request.url.path, ex)
    return PlainTextResponse(INTERNAL_BODY, status_code=500)


# --- Swagger/OpenAPI: Bearer "Authorize" button ---
def _add_bearer_security_to_openapi(app: FastAPI) -> None:
    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(title=app.title, version=app.version, routes=app.routes)
        schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        schemes["BearerAuth"] = {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "Firebase ID token (raw JWT, without the 'Bearer ' prefix).",
        }
        for path, item in schema.get("paths", {}).items():
            if not path.startswith("/api/"):
                continue
            for op in item.values():
                if isinstance(op, dict):
                    op.setdefault("security", [{"BearerAuth": []}])
        app.openapi_schema = schema
        return app.openapi_schema

    app.openapi = custom_openapi


def create_app(
    directory: Optional[UserDirectoryService] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the API. Pass `directory` to inject a pre-wired service (tests, scripts);
    otherwise one is built from `settings` (default: environment) on first request.
    """
    settings = settings or Settings.from_env()

    app = FastAPI(title="Bioren API", version="0.1.0")
    app.state.settings = settings
    app.state.directory = directory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(Unauthorized, _unauthorized)
    app.add_exception_handler(RequestValidationError, _validation_failed)
    app.add_exception_handler(StorageError, _storage_failed)

    @app.get("/healthz")
    def health():
        return {"status": "ok"}

    app.include_router(auth_router)
    _add_bearer_security_to_openapi(app)
    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn (`bioren-api` console script). HOST / PORT from env."""
    uvicorn.run(
        "bioren_backend.app.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_config=None,  # keep the handlers installed by setup_logging()
    )


if __name__ == "__main__":
    run()
