"""HTTP transport for talking to a LaBB-CAT server.

Security notes:
- Treat server responses as untrusted input.
- Avoid printing or logging passwords or raw media bytes.
"""

from labbcat.client.http import HttpResponse, HttpSession, MultipartRequest

__all__ = ["HttpResponse", "HttpSession", "MultipartRequest"]
