"""Core primitives shared by the stores (store change events and their bus).

Kept free of FastAPI concerns so it can be reused by API routes, the session
facade, and tests.
"""
