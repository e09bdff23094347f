import logging
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import generate_latest

from cineprep.config import settings
from cineprep.core.middleware import SecurityHeadersMiddleware
from cineprep.core.rate_limit import install_rate_limiting, limiter
from cineprep.modules.auth import routes as auth_routes
from cineprep.modules.users import routes as users_routes
from cineprep.modules.lore import routes as lore_routes
from cineprep.modules.audio import routes as audio_routes
from cineprep.modules.favorites import routes as favorites_routes
from cineprep.modules.preferences import routes as preferences_routes

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
)
install_rate_limiting(app)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    detail = "Internal server error" if settings.is_production else str(exc)
    return JSONResponse(status_code=500, content={"detail": detail})


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_routes.router, prefix="/api")
app.include_router(users_routes.router, prefix="/api")
app.include_router(lore_routes.router, prefix="/api")
app.include_router(audio_routes.router, prefix="/api")
app.include_router(favorites_routes.router, prefix="/api")
app.include_router(preferences_routes.router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    logger.info(f"CinePrep backend starting ({settings.environment}) on port {settings.port}")
    logger.info(f"Qwen API key configured: {'yes' if settings.qwen_configured else 'no'}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown")


@app.get("/")
async def root():
    return {"message": "CinePrep API", "status": "running", "health": "/health"}


@app.get("/health")
@limiter.exempt
async def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "qwen_configured": settings.qwen_configured,
    }


@app.get("/metrics")
@limiter.exempt
async def metrics_endpoint():
    """Prometheus text format"""
    return PlainTextResponse(generate_latest())
