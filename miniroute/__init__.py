"""miniroute - environment-aware request routing for mini-program style clients.

Resolves the deployment environment, rewrites outgoing request URLs against it
and normalizes media URLs inside JSON responses.
"""

# Package metadata for PyPI distribution
__version__ = "0.3.0"
__author__ = "miniroute maintainers"
