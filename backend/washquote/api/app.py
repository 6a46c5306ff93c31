"""FastAPI application: create_app factory with /api endpoints."""

# Annotations stay evaluated here: FastAPI inspects the slowapi-wrapped endpoints.

import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

# Load .env from project root (backend/../.env or backend/.env)
_backend_dir = Path(__file__).resolve().parent.parent.parent
_project_root = _backend_dir.parent
load_dotenv(_project_root / ".env")
load_dotenv(_backend_dir / ".env")

from washquote import __version__
from washquote.data.defaults import DEFAULT_COMPANY_ID
from washquote.exceptions import AnalysisFailedError, EstimatorValidationError
from washquote.services.pipeline import EstimatorPipeline, MetricsEstimate
from washquote.services.property_lookup import standardize_address, validate_address
from washquote.services.storage import ImageUpload

logger = logging.getLogger(__name__)

MAX_IMAGES = 5
MAX_IMAGE_BYTES = 10 * 1024 * 1024
ANALYSIS_RATE_LIMIT = "10/minute"


class EstimateRequest(BaseModel):
    """Body of POST /api/estimator/estimate.

    ``metrics`` is taken as-is from the client (object, JSON string or
    prose) and coerced server-side.
    """

    metrics: Any = None
    service_types: list[str] = Field(default_factory=list)
    company_id: str = DEFAULT_COMPANY_ID
    side: str = ""


class AddressRequest(BaseModel):
    address: str


def _split_service_types(values: list[str] | None) -> list[str]:
    """Accept repeated form fields as well as comma-separated values."""
    return [
        part.strip()
        for value in values or []
        for part in value.split(",")
        if part.strip()
    ]


async def _read_image(file: UploadFile) -> ImageUpload:
    filename = file.filename or "upload"
    content_type = file.content_type or ""
    if not content_type.startswith("image/"):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type for '{filename}'. Only images are accepted.",
        )
    data = await file.read()
    if len(data) > MAX_IMAGE_BYTES:
        raise HTTPException(
            status_code=400,
            detail=f"'{filename}' exceeds the 10 MB size limit.",
        )
    return ImageUpload(filename=filename, content_type=content_type, data=data)


def _metrics_estimate_payload(result: MetricsEstimate) -> dict[str, Any]:
    return {
        "metrics": result.metrics.model_dump(mode="json", by_alias=True),
        "source": result.source.value,
        "estimates": [e.model_dump(mode="json") for e in result.estimates],
        "total_estimate": result.total_estimate,
        "image_ref": result.image_ref,
    }


def _cors_origins() -> list[str]:
    raw = os.environ.get("WASHQUOTE_CORS_ORIGINS", "http://localhost:3000")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def create_app(
    *,
    pipeline: EstimatorPipeline | None = None,
    rate_limit: str = ANALYSIS_RATE_LIMIT,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    pipeline
        Optional pre-built pipeline for dependency injection (e.g. tests).
        If not provided, one is created from environment variables on the
        first request that needs it.
    rate_limit
        Fixed-window limit applied per client to the image analysis
        endpoints, in slowapi notation.
    """
    app = FastAPI(title="Washquote", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, strategy="fixed-window")
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        logger.warning("Rate limit exceeded for %s", get_remote_address(request))
        return JSONResponse(
            status_code=429,
            content={"detail": "Too many requests. Please try again in a minute."},
        )

    # Store on app state so tests can inject mocks
    app.state.pipeline = pipeline

    def _get_pipeline() -> EstimatorPipeline:
        pl: EstimatorPipeline | None = app.state.pipeline
        if pl is not None:
            return pl
        # Lazy-create from environment
        from washquote.api.deps import create_pipeline

        pl = create_pipeline()
        app.state.pipeline = pl
        return pl

    # ------------------------------------------------------------------
    # GET /api/health
    # ------------------------------------------------------------------

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    # ------------------------------------------------------------------
    # POST /api/estimator/analyze
    # ------------------------------------------------------------------

    @app.post("/api/estimator/analyze")
    @limiter.shared_limit(rate_limit, scope="image-analysis")
    async def analyze(
        request: Request,
        company_id: str = Form(...),
        service_types: list[str] | None = Form(None),
        address: str | None = Form(None),
        images: list[UploadFile] | None = File(None),
    ) -> dict[str, Any]:
        images = images or []
        if not images:
            raise HTTPException(status_code=400, detail="At least one image is required.")
        if len(images) > MAX_IMAGES:
            raise HTTPException(
                status_code=400,
                detail=f"Too many images. At most {MAX_IMAGES} are accepted.",
            )
        uploads = [await _read_image(file) for file in images]

        try:
            result = await _get_pipeline().analyze(
                uploads,
                _split_service_types(service_types),
                company_id,
                address=address,
            )
        except EstimatorValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except AnalysisFailedError as exc:
            logger.exception("Pipeline error during analysis")
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        payload = result.model_dump(mode="json")
        payload["summary_dict"] = result.to_summary_dict()
        return payload

    # ------------------------------------------------------------------
    # POST /api/estimator/measure
    # ------------------------------------------------------------------

    @app.post("/api/estimator/measure")
    @limiter.shared_limit(rate_limit, scope="image-analysis")
    async def measure(
        request: Request,
        image: UploadFile,
        company_id: str = Form(...),
        service_types: list[str] | None = Form(None),
        side: str = Form(""),
    ) -> dict[str, Any]:
        upload = await _read_image(image)
        try:
            result = await _get_pipeline().measure(
                upload,
                side,
                _split_service_types(service_types),
                company_id,
            )
        except EstimatorValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except AnalysisFailedError as exc:
            logger.exception("Pipeline error during measurement")
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return _metrics_estimate_payload(result)

    # ------------------------------------------------------------------
    # POST /api/estimator/estimate
    # ------------------------------------------------------------------

    @app.post("/api/estimator/estimate")
    def estimate(body: EstimateRequest) -> dict[str, Any]:
        try:
            result = _get_pipeline().estimate_from_metrics(
                body.metrics,
                _split_service_types(body.service_types),
                body.company_id,
                side=body.side,
            )
        except EstimatorValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _metrics_estimate_payload(result)

    # ------------------------------------------------------------------
    # GET /api/estimator/config/{company_id}
    # ------------------------------------------------------------------

    @app.get("/api/estimator/config/{company_id}")
    def tenant_config(company_id: str) -> dict[str, Any]:
        return _get_pipeline().tenants.get(company_id).model_dump(mode="json")

    # ------------------------------------------------------------------
    # GET /api/estimator/analyses/{analysis_id}
    # ------------------------------------------------------------------

    @app.get("/api/estimator/analyses/{analysis_id}")
    def get_analysis(analysis_id: str) -> dict[str, Any]:
        analysis = _get_pipeline().store.get(analysis_id)
        if analysis is None:
            raise HTTPException(
                status_code=404,
                detail=f"Analysis '{analysis_id}' not found.",
            )
        return analysis.model_dump(mode="json")

    # ------------------------------------------------------------------
    # POST /api/estimator/validate-address
    # ------------------------------------------------------------------

    @app.post("/api/estimator/validate-address")
    def check_address(body: AddressRequest) -> dict[str, Any]:
        return {
            "address": standardize_address(body.address),
            "valid": validate_address(body.address),
        }

    return app
