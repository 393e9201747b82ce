"""
reachinbox/src/main.py — Application Entry Point

Responsibility:
    FastAPI application factory.  Creates the app, mounts the routes from
    reachinbox/src/api/routes.py and holds the shared ``RAGPipeline`` and
    ``EmailCategorizer`` on ``app.state``.  Collaborators may be injected
    (tests); otherwise they are built from settings on first use.

Run:
    reachinbox-api                  # console script
    python -m reachinbox.src.main   # same, without installing
"""

from __future__ import annotations

from fastapi import FastAPI

from reachinbox.src.api.routes import router
from reachinbox.src.core.categorizer import EmailCategorizer
from reachinbox.src.core.rag_engine import RAGPipeline


def create_app(pipeline: RAGPipeline | None = None, categorizer: EmailCategorizer | None = None) -> FastAPI:
    """Instantiate the FastAPI app with shared dependencies."""
    app = FastAPI(title="ReachInbox Suggested Replies", version="1.0.0")
    app.state.pipeline = pipeline
    app.state.categorizer = categorizer
    app.include_router(router)
    return app


def run(host: str = "127.0.0.1", port: int = 8000) -> None:
    import uvicorn

    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    run()
