"""
Application package initializer.

This package contains the main entrypoint for the API and all of its
submodules.  Each domain (auth, reviews, coupons, payments, ...) has
a router in ``api/v1/endpoints``, a service in ``services`` and its
pydantic models in ``schemas``.
"""

from .main import app  # noqa: F401
