#!/usr/bin/env python
"""Script to run the Task Manager API server."""
import os
import sys
from pathlib import Path

# Run from the repository root so relative DATABASE_URLs resolve there
repo_dir = Path(__file__).resolve().parent
sys.path.insert(0, str(repo_dir))
os.chdir(repo_dir)

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "taskmanager.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("APP_ENV", "development") != "production",
    )
