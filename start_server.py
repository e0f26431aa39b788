"""
Server startup script.
Starts the FastAPI application; tables are created in the app lifespan.
"""
import sys

import uvicorn

from tradeboard.config import get_settings


def main() -> None:
    settings = get_settings()

    print("=" * 60)
    print("TRADEBOARD - SERVER STARTUP")
    print("=" * 60)
    print(f"\nServer starting on http://{settings.host}:{settings.port}")
    print("\nEndpoints:")
    print("  - Health: GET /health")
    print("  - Trades: GET/POST /api/trades, POST /api/trades/settle")
    print("  - Leaderboard: GET /api/leaderboard")
    print("  - API Docs: GET /docs")
    print("\nPress CTRL+C to stop")
    print("=" * 60 + "\n")

    try:
        uvicorn.run(
            "tradeboard.main:app",
            host=settings.host,
            port=settings.port,
            reload=settings.debug,
            log_level="debug" if settings.debug else "info",
        )
    except KeyboardInterrupt:
        print("\nServer shutdown requested")
        sys.exit(0)


if __name__ == "__main__":
    main()
