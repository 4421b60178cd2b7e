"""
HTTP API for the Alithos Terminal dashboard.

Entry point: python -m alithos.api.server
"""
from .server import create_app, run_server

__all__ = ["create_app", "run_server"]
