"""
Core application for Timeclock.

Shared helpers used across the other apps:
- Month keys ("YYYY-MM") and month boundaries
- Duration formatting
- Template context processors
"""
