"""
Development settings
"""
from .base import *

DEBUG = True

# Development-specific apps
INSTALLED_APPS += [
    # Add dev-only apps here if needed
]

LOGGING['root']['level'] = env('LOG_LEVEL', default='DEBUG')
