"""
Vercel entry point for the advisor's FastAPI backend.

Wraps the FastAPI application with Mangum so it can run as a
serverless function.
"""

import os
import sys
from pathlib import Path

# Add project root to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

os.environ.setdefault("DEBUG", "False")

from app import app as application
from mangum import Mangum

# lifespan='off': configuration errors are reported per request instead of
# failing the cold start
handler = Mangum(application, lifespan="off")

__all__ = ["handler", "application"]
