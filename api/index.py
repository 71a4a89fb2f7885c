"""
Vercel serverless entry point for the Sustainability Tracker.

Each feedback endpoint is a stateless request handler, so the Flask app runs
unchanged as a serverless function. Use STORE_BACKEND=supabase there: the
function filesystem is ephemeral except for /tmp, so a SQLite entry store
would lose its data on every cold start.
"""

import sys
import os

# Make the project root importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Import the Flask app object
from app import app  # noqa: E402,F401

# Vercel expects a handler named `app` at module level
