"""
FastAPI Backend for the Bookkeeping Hub

Provides REST API endpoints for companies, clients, invoices and
bookkeeping records.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
