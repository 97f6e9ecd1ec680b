import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from visulearn.agents.context_loader import get_user_friendly_error
from visulearn.core.config import settings
from visulearn.core.errors import ConfigurationError, PreconditionError
from visulearn.core.logger import get_logger, log_api_request, log_error
from visulearn.web import routes as api_routes
from visulearn.web.jobs import JobRegistry

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.PROJECT_NAME} {settings.VERSION} started")
    yield


app = FastAPI(title="VisuLearn API", version=settings.VERSION, lifespan=lifespan)
# Batch jobs live in memory for the lifetime of the process
app.state.jobs = JobRegistry()


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    log_api_request(request.method, request.url.path, response.status_code, (time.perf_counter() - start) * 1000)
    return response


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    log_error("Configuration error", context={"setting": exc.setting, "path": request.url.path})
    return JSONResponse(
        {"success": False, "error": get_user_friendly_error("CONFIGURATION_ERROR"), "detail": str(exc)},
        status_code=500,
    )


@app.exception_handler(PreconditionError)
async def precondition_error_handler(request: Request, exc: PreconditionError):
    log_error("Content planning failed", exc, {"path": request.url.path})
    return JSONResponse(
        {"success": False, "error": get_user_friendly_error("PLANNING_FAILED"), "detail": str(exc)},
        status_code=502,
    )


@app.get("/health")
async def health():
    return {"status": "ok", "service": settings.PROJECT_NAME, "version": settings.VERSION}


#Include Routers
app.include_router(api_routes.router, tags=["Generation"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("visulearn.main:app", host="0.0.0.0", port=8000)
