"""
Booking engine services
"""
