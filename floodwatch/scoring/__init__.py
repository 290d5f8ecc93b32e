"""
scoring — deterministic flood risk scoring engine.
"""

from .engine import RiskScoringEngine, classify_score, evaluate

__all__ = ["RiskScoringEngine", "classify_score", "evaluate"]
