"""HTTP surface -- FastAPI app factory, routes and middleware."""
from .gateway import create_app
