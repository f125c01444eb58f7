"""
Reminders Domain

Periodic reminder batches delivered over WhatsApp and SMS.
"""
