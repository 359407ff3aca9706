"""
Test suite for Clinic Ledger.

Contains unit tests for the scheduling and ledger rules and API tests for
the appointment, clinical note, invoice and payment operations.
"""
import os

# Set environment for testing before any application module reads settings
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test_clinic_ledger.db"
