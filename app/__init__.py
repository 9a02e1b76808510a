"""
PlayerPath application-specific code.

This package contains the authenticated-session implementation:
- models: Session, profile and role types
- services: Session coordinator, profile loading, stores and collaborators
- pipelines: Account deletion cascade
- routers / schemas: HTTP surface for the UI client
- config: Application settings

Uses generic infrastructure from the common/ package.
"""

from app.config import settings

__all__ = ["settings"]
