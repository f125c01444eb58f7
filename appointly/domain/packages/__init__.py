"""
Packages Domain

Prepaid package assignment and the credit ledger.
"""
