"""SimRec: multi-signal similar-item recommendation engine.

This package trains item latent-factor models from implicit feedback events
(views, likes and dislikes) and serves similar-item recommendations by fusing
the rankings of every trained algorithm.

Modules:
    api: FastAPI application and query endpoints
    recommender: preference resolution, ALS training, prediction and fusion
"""

__version__ = "0.1.0"
