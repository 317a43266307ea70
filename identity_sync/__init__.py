"""
identity_sync

Synchronizes an identity provider session with an application backend that
trusts identity tokens forwarded by the client.
"""

__version__ = "1.0.0"
