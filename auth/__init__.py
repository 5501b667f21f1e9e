"""auth/ -- Token, cookie and password core for AuthKit.

Layer rule: auth/ imports from core/ (settings, errors) plus stdlib and
third-party libraries. It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""

__version__ = "1.0.0"
