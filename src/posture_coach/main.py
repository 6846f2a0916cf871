"""
FastAPI entry point for the posture classification backend.

Endpoints:
    GET  /health
    POST /api/posture/classify
        Receives a full [1, T, 132] landmark window from the mobile app,
        classifies the exercise and returns form flags + coaching messages
        for the last frame.

Run:
    cd <project_root>
    uvicorn posture_coach.main:app --host 0.0.0.0 --port 8000 --reload
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import (
    LOG_LEVEL,
    MODEL_CONFIG_PATH,
    MODEL_ENABLED,
    MODEL_PATH,
    ONNX_PROVIDERS,
    SERIALIZE_RUNS,
)
from .errors import InvalidShape
from .inference import InferenceEngine
from .schemas import (
    ClassificationRequest,
    ErrorResponse,
    HealthResponse,
    PostureResponse,
)
from .service import PostureService

logger = logging.getLogger("posture_coach")
logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s | %(name)s | %(message)s")


# ============================================================================
# App lifecycle: load the model once at startup
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the ONNX model at startup and release it on shutdown.

    A ``ModelLoadFailure`` propagates so the server never becomes ready
    with a broken model.
    """
    logger.info("Starting posture classification backend...")
    engine = None
    if MODEL_ENABLED:
        engine = InferenceEngine.load(
            MODEL_PATH,
            MODEL_CONFIG_PATH,
            providers=ONNX_PROVIDERS,
            serialize_runs=SERIALIZE_RUNS,
        )
        app.state.service = PostureService(engine)
        logger.info("Model loaded, server is ready.")
    else:
        app.state.service = None
        logger.warning("Posture model disabled (POSTURE_MODEL_ENABLED); classify will return 503.")
    try:
        yield
    finally:
        app.state.service = None
        if engine is not None:
            engine.close()
        logger.info("Shutting down.")


app = FastAPI(
    title="Posture Coach API",
    version="1.0.0",
    lifespan=lifespan,
)
app.state.service = None

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error_code": code, "message": message},
    )


# ============================================================================
# Health-check
# ============================================================================

@app.get("/health", response_model=HealthResponse)
def health():
    service = app.state.service
    if service is None:
        return HealthResponse(
            status="degraded" if MODEL_ENABLED else "disabled",
            model_loaded=False,
        )
    return HealthResponse(
        status="ok",
        model_loaded=True,
        sequence_length=service.engine.sequence_length,
        num_classes=service.engine.num_classes,
    )


# ============================================================================
# Classification endpoint
# ============================================================================

@app.post(
    "/api/posture/classify",
    response_model=PostureResponse,
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
def classify(request: ClassificationRequest):
    """Window → classification → posture rules → merged response.

    Sync on purpose: FastAPI runs it in a threadpool so ``session.run`` does
    not block the event loop.
    """
    service = app.state.service
    if service is None:
        return _error(503, "MODEL_UNAVAILABLE", "Posture model is not loaded.")

    try:
        return service.classify(request.window)
    except InvalidShape as exc:
        return _error(400, "INVALID_SHAPE", str(exc))
    except Exception:
        logger.exception("Posture classification failed")
        return _error(500, "ANALYSIS_FAILED", "Error processing posture.")


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
