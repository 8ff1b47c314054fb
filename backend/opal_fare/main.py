"""FastAPI application for the Opal fare estimator."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from opal_fare.api.endpoints import router
from opal_fare.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)

app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/")
def root():
    """Root endpoint with service information."""
    return {
        "message": f"{settings.API_TITLE} is running",
        "version": settings.API_VERSION,
        "docs": "/docs"
    }


def main():
    import uvicorn

    uvicorn.run("opal_fare.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
