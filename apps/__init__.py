"""
Timeclock Django applications package.

This package contains all Django apps for the time-clock system:
- core: Shared helpers (month handling, duration formatting, context processors)
- accounts: Users, login, session validation, admin user management, API tokens
- attendance: Check-in/out, shift history, the dual-write local store
- expenses: Monthly multi-currency expense reports and their approval workflow
- api: REST API endpoints for external integrations
"""
