"""
FastAPI todo backend with token-based user accounts.

The ASGI application lives in `todo_api.main` (`todo_api.main:app`); use
`todo_api.main.create_app()` to build one around custom repositories.
"""

__version__ = "0.2.0"
