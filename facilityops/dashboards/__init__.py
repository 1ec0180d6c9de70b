"""
Dashboards Module
=================

Per-role read models, the navigation state that addresses them, and a
client-side dashboard session built on the coherent cache.
"""
