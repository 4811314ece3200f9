"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any import that might build settings.
"""

import os

os.environ["TESTING"] = "true"

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("LOG_LEVEL", "WARNING")
