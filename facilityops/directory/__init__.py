"""
Directory Module
================

Read-only view of properties and staff memberships, plus the closed
role/capability and skill model every other context checks against.

Property and membership administration happens elsewhere; this context only
answers "who may do what, where, with which skills".
"""
