"""
Core modules for the payment gate.

This package contains the entitlement ledger, payment recording,
generation orchestration and ordered delivery.
"""
