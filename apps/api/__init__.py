"""
REST API application for Timeclock.

This app provides REST API endpoints for:
- Payroll and reporting integrations
- Check-in/check-out from other clients
- Token-based authentication for API clients

Built with Django REST Framework.
"""
