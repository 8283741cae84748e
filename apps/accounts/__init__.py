"""
Accounts app - email login, roles and session validation.

Users sign in with email and password. Every request with a session is
re-checked against the database so that disabled or deleted users lose
access immediately.
"""
