# ===============================================================================
# PYTEST CONFIGURATION FOR THE OFFERS ENGINE
# ===============================================================================
"""
Global test configuration.

Test Structure:
- tests/offers/ mirrors apps/offers/
- tests/factories/ holds plain factory functions

Run all tests: pytest tests/
"""

import os

import django


def pytest_configure():
    """Configure Django settings for pytest"""
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.test')

    # Configure Django
    django.setup()
