"""
Attendance app - check-in/check-out, shift history and admin shift review.
"""
