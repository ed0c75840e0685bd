"""Prediction-gated replay of completed games."""

from .predictions import PredictionStore
from .synchronizer import ReplayState, ReplayStream, ReplaySynchronizer, update_scores

__all__ = [
    "PredictionStore",
    "ReplayState",
    "ReplayStream",
    "ReplaySynchronizer",
    "update_scores",
]
