"""Application package for the skillnet backend.

The package bundles the FastAPI controllers, services, repositories and
SQLModel tables for user authentication, friendships and competences.
Individual modules contain the concrete implementations.
"""
