"""Backend REST clients, one module per resource.

Use explicit imports:
    from clientdesk.clients.base import ApiClient
    from clientdesk.clients import projects, channels
"""

from .base import ApiClient

__all__ = ["ApiClient"]
