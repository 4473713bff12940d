"""REST API layer for KubeSim.

Exposes:
    create_app -- FastAPI application factory.
"""

from kubesim.api.app import create_app

__all__ = ["create_app"]
