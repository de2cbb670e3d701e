"""FastAPI application main module.

This module defines the main FastAPI application instance and core API
endpoints for the SimRec query service. It provides health and status
endpoints and serves as the entry point for the API server.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI

from simrec import __version__
from simrec.api.exceptions import SimRecAPIException, simrec_exception_handler
from simrec.api.logging_config import RequestLoggingMiddleware
from simrec.api.routes import queries
from simrec.recommender.utils import check_model_exists

# Create FastAPI application instance
app = FastAPI(
    title="SimRec API",
    description="Multi-signal similar-item recommendation service",
    version=__version__,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_exception_handler(SimRecAPIException, simrec_exception_handler)

# Include routers
app.include_router(queries.router)


@app.get("/ping")
def ping() -> Dict[str, str]:
    """Health check endpoint.

    Returns:
        Dictionary with status key set to "ok".

    Example:
        >>> response = client.get("/ping")
        >>> assert response.json() == {"status": "ok"}
    """
    return {"status": "ok"}


@app.get("/status")
def status(model_dir: Optional[str] = None) -> Dict[str, Any]:
    """Report which training run is loaded.

    Loads the latest run if it exists and has not been loaded yet.
    """
    model_dir = queries.resolve_model_dir(model_dir)

    if not check_model_exists(model_dir):
        return {
            "model_loaded": False,
            "model_dir": model_dir,
            "run_id": None,
            "algorithms": {},
        }

    engine = queries.get_engine(model_dir)
    return {
        "model_loaded": True,
        "model_dir": model_dir,
        "run_id": engine.run_id,
        "algorithms": {
            name: {"num_items": model.n_items, "rank": model.rank}
            for name, model in engine.models.items()
        },
    }


if __name__ == "__main__":
    import os

    import uvicorn

    from simrec.api.logging_config import setup_logging

    setup_logging(os.getenv("LOG_LEVEL", "INFO"))

    uvicorn.run(
        "simrec.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
    )
