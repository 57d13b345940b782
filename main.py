from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config import settings
from exceptions import ImgfitError
from processor.registry import create_processor
from routers import health, img
from utils.logging import get_logger, setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: configure logging, build the processor. Shutdown: close it."""
    # --- Startup ---
    setup_logging()
    logger = get_logger("main")

    processor = create_processor(settings)
    tools = processor.codec.available()
    missing = [name for name, available in tools.items() if not available]
    if missing:
        logger.warning(
            f"Missing tools: {missing}",
            extra={"context": {"codec": processor.codec.name, "missing_tools": missing}},
        )
    app.state.processor = processor

    yield

    # --- Shutdown ---
    processor.close()
    logger.info("imgfit shutting down")


app = FastAPI(
    title="imgfit",
    description="Image resize and optimisation service",
    version=health.VERSION,
    lifespan=lifespan,
)


@app.exception_handler(ImgfitError)
async def imgfit_error_handler(request: Request, exc: ImgfitError):
    if exc.status_code >= 500:
        get_logger("main").error(
            exc.message,
            extra={"context": {"error": exc.error_code, "path": request.url.path}},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.error_code,
            "message": exc.message,
            **exc.details,
        },
    )


app.include_router(health.router)
app.include_router(img.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=settings.port)
