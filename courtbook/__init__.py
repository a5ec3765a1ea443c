"""
courtbook - weekly availability, slot generation and double-booking-safe reservations.
"""

__version__ = "0.1.0"
