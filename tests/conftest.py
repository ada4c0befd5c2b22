"""
Root conftest.py - Global configuration for all test layers.

Test Layers:
    - component/  : Component tests (in-memory data store, fake Supabase client)
    - unit/       : Unit tests (pure functions, no I/O)
"""
import os
import sys

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

# Keep test runs off any real project settings
os.environ.setdefault("ENV", "test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
