"""
Serverless entry point for the Book Builder API.

Wraps the FastAPI application with Mangum. Lifespan is disabled here, so
the document store is bound on the first request that needs it.
"""

import os
import sys
from pathlib import Path

# Add project root to path for imports
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

os.environ.setdefault("DEBUG", "False")

from app import app as application
from mangum import Mangum

# Use lifespan='off' to prevent startup errors from crashing the function
handler = Mangum(application, lifespan="off")

__all__ = ["handler", "application"]
