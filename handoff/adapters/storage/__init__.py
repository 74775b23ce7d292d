"""Persistence adapters for OTP records and the orders they gate.

The order CRUD layer owns orders; this package only reads them and performs
the single COMPLETED transition.
"""
