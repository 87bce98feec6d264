"""
Archivision Render API

FastAPI application that turns color-coded architectural sketches into
photorealistic renders.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from archivision.config import get_settings
from archivision.core.errors import RenderError
from archivision.logging import configure_logging, get_logger
from archivision.models.api import HealthResponse
from archivision.routes import render


# Get settings
settings = get_settings()
configure_logging(settings.log_level)
logger = get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    **Archivision Render API** - Photorealistic renders from color-coded sketches.

    ## Features
    - **Render**: Sketch + style/material directives → photorealistic image
    - **Edit**: Free-text edits, optionally limited to annotated regions
    - **Modify**: Masked edits driven by a drawn selection
    - **Upscale**: 4K enhancement of a finished render

    ## Workflow
    1. Upload a sketch → `/api/v1/render`
    2. Draw a selection and describe the change → `/api/v1/render/modify/selection`
    3. Upscale the result → `/api/v1/render/upscale`
    """,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(render.router, prefix=settings.api_prefix)


# ============ Error Handling ============

@app.exception_handler(RenderError)
async def render_error_handler(request: Request, exc: RenderError) -> JSONResponse:
    logger.warning("render.failed", path=request.url.path, kind=exc.kind, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


# ============ Health Check ============

@app.get("/", response_model=HealthResponse, tags=["Health"])
async def root():
    """Root endpoint - health check."""
    return HealthResponse(
        status="ok",
        version=settings.app_version,
        message="Archivision Render API is running. Visit /docs for API documentation."
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        version=settings.app_version
    )


# ============ Run with Uvicorn ============

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "archivision.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
