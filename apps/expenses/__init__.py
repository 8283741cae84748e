"""
Expenses app - monthly expense reports with multi-currency items and
admin approval.
"""
