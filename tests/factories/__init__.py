"""
Test factories for creating offers, claims and usage rows.
"""
