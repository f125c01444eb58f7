"""
Appointments Domain

Booking reservation and the appointment status lifecycle.
"""
