"""
main.py - Server launcher and entry point.

Run this file to start the room booking API:

    python main.py

This file does NOT contain application logic. See app.py for the FastAPI
application, service wiring, and the sweeper lifecycle.

Direct uvicorn usage:
    uvicorn app:app --reload
"""

from __future__ import annotations

import uvicorn

from roombook.utils.config import get_settings


def main() -> None:
    """Start the room booking server."""
    settings = get_settings()
    base_url = f"http://{settings.host}:{settings.port}"

    print("=" * 60)
    print(f"  {settings.app_name} v{settings.app_version}")
    print("=" * 60)
    print(f"  Server   : {base_url}")
    print(f"  Rooms    : {base_url}/api/rooms")
    print(f"  API docs : {base_url}/docs")
    print(f"  Sweeper  : every {settings.sweep_interval_seconds:.0f}s ({settings.sweep_promotion_policy})")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    # Single worker: all booking state lives in this process.
    uvicorn.run(
        "app:app",
        host=settings.host,
        port=settings.port,
        workers=1,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
