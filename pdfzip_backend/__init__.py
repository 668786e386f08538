"""Backend utilities for the PDF-to-ZIP service.

Route handlers in server.py stay thin:
- upload persistence under sanitized names + size limits
- ZIP building with client supplied display names
- deferred cleanup of uploads and expired archives

Temp files live under a single root (./tmp by default) that is wiped on
shutdown, so nothing written here is meant to survive a restart.
"""
