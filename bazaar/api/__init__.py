"""
HTTP surface — FastAPI routers over the services.

    from bazaar.api import create_app

    app = create_app(Settings.from_env())
"""

from bazaar.api._app import create_app

__all__ = ("create_app",)
