#!/usr/bin/env python3
"""
Run the FastAPI server for development
"""

import uvicorn

from moviedb.config.settings import get_settings

if __name__ == "__main__":
    settings = get_settings()
    base_url = f"http://localhost:{settings.api_port}"

    print("Starting movie database API server...")
    print(f"API will be available at: {base_url}")
    print(f"API documentation at: {base_url}/docs")
    print("Press Ctrl+C to stop the server")

    uvicorn.run(
        "moviedb.api:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.api_log_level,
    )
