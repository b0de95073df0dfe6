"""
Test suite for the Doctor Booking API.

Contains unit tests for slot validation and integration tests for the slot
service and HTTP endpoints.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
