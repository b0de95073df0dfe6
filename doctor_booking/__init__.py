"""
Doctor Booking API

A FastAPI service where doctors publish their weekly recurring availability
and patients look up the slots they can book.
"""

__version__ = "1.0.0"
