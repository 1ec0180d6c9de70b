"""
Shared API Layer
================

Request-scoped composition of services, actor resolution, middleware and
exception handlers shared by every router.
"""
