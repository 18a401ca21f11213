#!/usr/bin/env python3
"""
Backend server launcher script.

Starts uvicorn on the FastAPI application. Host and port can be overridden
with PROJECT_HEALTH_HOST / PROJECT_HEALTH_PORT.
"""

import os


def main() -> None:
    import uvicorn
    uvicorn.run(
        "project_health.api:app",
        host=os.environ.get("PROJECT_HEALTH_HOST", "127.0.0.1"),
        port=int(os.environ.get("PROJECT_HEALTH_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
