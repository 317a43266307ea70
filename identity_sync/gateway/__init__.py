"""
Gateway Package
===============

Client side of the backend endpoints that accept an identity token.

Main Components:
----------------
- client.py: BackendGateway interface and its httpx implementation

Usage:
------
    from identity_sync.gateway import HttpBackendGateway, create_backend_client
    gateway = HttpBackendGateway(create_backend_client())
"""

from .client import BackendGateway, HttpBackendGateway, create_backend_client

__all__ = ["BackendGateway", "HttpBackendGateway", "create_backend_client"]
