"""
PlayerPath Pipelines.

Business logic orchestration functions.
"""

from app.pipelines.account import account_deletion_pipeline

__all__ = ["account_deletion_pipeline"]
