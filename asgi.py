"""
asgi.py -- ASGI entry point for AuthKit.

Kept separate from api/main.py so process managers have one stable import
path regardless of how the API package is laid out.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import app

__all__ = ["app"]
