"""Finances app package.

Host earnings reporting over bookings: period summaries and a daily
series for dashboard charts. Payment capture and refund settlement are
handled outside this project.
"""
