from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from saenggibu.api.routes import router as api_router
from saenggibu.core.database import SessionLocal, engine
from saenggibu.core.errors import PipelineError
from saenggibu.core.logging_setup import configure_logging
from saenggibu.models.base import Base
import saenggibu.models  # noqa: F401
from saenggibu.services.files import sweep_stale_analyses

configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(title="생기부 Consulting API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.exception_handler(PipelineError)
def pipeline_error_handler(request: Request, exc: PipelineError):
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message, kind=type(exc).__name__)
    else:
        logger.info("request_rejected", path=request.url.path, error=exc.message, kind=type(exc).__name__)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


@app.exception_handler(RequestValidationError)
def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg', '')}" if location else error.get("msg", ""))
    logger.info("request_invalid", path=request.url.path, problems=problems)
    return JSONResponse(
        status_code=422,
        content={"success": False, "error": "요청 형식이 올바르지 않습니다. " + "; ".join(problems)},
    )


@app.exception_handler(Exception)
def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("request_crashed", path=request.url.path, kind=type(exc).__name__, exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "error": "서버 오류가 발생했습니다."})


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        sweep_stale_analyses(db)
    finally:
        db.close()


@app.get("/health")
def health_check():
    return {"status": "ok"}
