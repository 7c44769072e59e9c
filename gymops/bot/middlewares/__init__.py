"""
Middlewares for the admin bot.

Currently includes:
- AdminContextMiddleware: flags whether the sender is on the admin allow-list.
"""

from .admin_context import AdminContextMiddleware

__all__ = ["AdminContextMiddleware"]
