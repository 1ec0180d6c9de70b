"""
Infrastructure
==============

Cross-context technical building blocks:
- database: async SQLAlchemy engine and sessions
- memory: process-local store implementing the same repository contracts
- realtime: in-process publish/subscribe channel for push events
"""
