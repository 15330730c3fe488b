"""FastAPI application: booking webhook intake plus the operator API."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from leadflow import __version__
from leadflow.config import settings
from leadflow.api import audit, auth, health, jobs, runs, webhooks
from leadflow.logging_config import configure_logging

configure_logging(debug=settings.debug)

app = FastAPI(
    title=settings.app_name,
    description="Cold outreach, reply routing and lead lifecycle automation",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)

for module in (health, auth, webhooks, jobs, runs, audit):
    app.include_router(module.router, prefix=settings.api_prefix)


@app.get("/")
def root():
    return {"name": settings.app_name, "version": __version__, "docs": app.docs_url}
