"""
Client side of miniroute: the request interceptor for host primitives and httpx clients.
"""

from .factory import create_environment, create_interceptor
from .http_hooks import install_httpx_hooks
from .interceptor import PATCH_MARKER, PRIMITIVES, RequestInterceptor, lock_attributes

__all__ = [
    "create_environment",
    "create_interceptor",
    "install_httpx_hooks",
    "PATCH_MARKER",
    "PRIMITIVES",
    "RequestInterceptor",
    "lock_attributes",
]
