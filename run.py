#!/usr/bin/env python3
"""Startup script for container deployment."""
import uvicorn

from app.config import settings

if __name__ == "__main__":
    # HOST / PORT come from the environment via Settings
    print(f"Starting Orca API on {settings.host}:{settings.port}")
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
    )
