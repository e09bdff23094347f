import uvicorn

from cineprep.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "cineprep.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
