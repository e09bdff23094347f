from fastapi import FastAPI
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from cineprep.config import settings

# Shared so routers can decorate the LLM and TTS endpoints with a stricter limit
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])


def install_rate_limiting(app: FastAPI, app_limiter: Limiter = limiter) -> None:
    """Attach `app_limiter` to `app`.

    Decorated routes enforce their own limit; every other route falls back to
    the limiter's default_limits through SlowAPIMiddleware.
    """
    app.state.limiter = app_limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
