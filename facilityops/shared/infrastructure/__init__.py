"""
Infrastructure Layer
=====================

Low-level technical concerns:
- Logging setup
- Bounded waits and retries around upstream calls
"""
