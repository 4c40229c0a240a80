from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from .config import Settings, settings as default_settings
from .services.content_service import ContentService
from .services.field_map import LocatorTable
import logging
import time
import uuid
from pathlib import Path
from .routers.content import router as content_router


def configure_logging(settings: Settings) -> logging.Logger:
    logger = logging.getLogger("backend.app")
    logger.setLevel(settings.LOG_LEVEL.upper())
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    if not logger.handlers:
        sh = logging.StreamHandler()
        sh.setFormatter(formatter)
        logger.addHandler(sh)
        if settings.LOG_FILE:
            log_file = Path(settings.LOG_FILE)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(log_file, encoding="utf-8")
            fh.setFormatter(formatter)
            logger.addHandler(fh)
    return logger


def create_app(
    settings: Settings | None = None,
    service: ContentService | None = None,
    table: LocatorTable | None = None,
) -> FastAPI:
    settings = settings or default_settings
    logger = configure_logging(settings)

    app = FastAPI(title="Site Content Publisher", version="0.1.0")
    app.state.settings = settings
    # fails fast when REPO_PATH is missing
    app.state.content_service = service or ContentService.from_settings(settings, table)
    logger.info(
        "app_ready repo=%s deploy=%s branch=%s",
        app.state.content_service.locator.repo_root,
        "on" if settings.deploy_configured else "off",
        settings.GITHUB_BRANCH,
    )

    @app.middleware("http")
    async def timing_middleware(request: Request, call_next):
        t0 = time.perf_counter()
        req_id = uuid.uuid4().hex[:8]
        request.state.req_id = req_id
        response = await call_next(request)
        total = time.perf_counter() - t0
        response.headers["X-Process-Time"] = f"{total:.3f}"
        response.headers["X-Request-ID"] = req_id
        if request.url.path.startswith("/api/") and request.url.path != "/api/health":
            logger.info(
                "req_timing id=%s method=%s path=%s status=%s total=%.3f",
                req_id,
                request.method,
                request.url.path,
                response.status_code,
                total,
            )
        return response

    @app.exception_handler(RequestValidationError)
    async def invalid_request_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        error = f"{where}: {first.get('msg')}" if where else str(first.get("msg", "invalid request"))
        logger.warning("request_invalid path=%s error=%s", request.url.path, error)
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Invalid request", "error": error, "staged": False},
        )

    app.include_router(content_router, tags=["content"])

    @app.get("/api/health", include_in_schema=False)
    def healthcheck():
        return {"status": "ok"}

    return app
