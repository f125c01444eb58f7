"""
Scheduling Domain

Working hours resolution and slot generation for availability queries.
"""
