"""
HTTP API for the admin panel.

Read and write endpoints over the Mirror Store plus sync control.
"""

from app.api.server import create_app, start_api_server, stop_api_server

__all__ = ["create_app", "start_api_server", "stop_api_server"]
