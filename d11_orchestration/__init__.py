"""
D11 Orchestration - ranking request flow

Ties validation, quota admission, the reasoning call and local
post-processing together in a fixed order.
"""

from .pipeline import RankingFlow, RankingOutcome

__all__ = ["RankingFlow", "RankingOutcome"]
