"""
Meeting room booking: slot generation, availability resolution and booking.
"""

__version__ = "0.1.0"
