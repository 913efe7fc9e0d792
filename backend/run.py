#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Set IS_TESTING=true to point the server at the test database instead of
the development one.
"""
import os
from pathlib import Path
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

import uvicorn

from thrive.core.config import settings

if __name__ == "__main__":
    db_label = "TEST" if settings.is_testing else "development"
    print(f"Starting Thrive scheduling API ({settings.environment}) with {db_label} database...")
    print("Access at: http://localhost:8000")
    print("API Docs: http://localhost:8000/docs")

    uvicorn.run(
        "thrive.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
