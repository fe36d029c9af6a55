"""Goal-matching package."""

from familybank.goals.matching import GoalMatchingEngine

__all__ = ["GoalMatchingEngine"]
