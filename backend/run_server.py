#!/usr/bin/env python3
"""
Launch script for GPS Tracker Backend.

Usage:
    python run_server.py [--port PORT] [--host HOST] [--accuracy M] [--movement M]

Examples:
    python run_server.py                       # Defaults: 50 m accuracy gate, 3 m movement
    python run_server.py --accuracy 30         # Stricter accuracy gate
    python run_server.py --port 5000           # Run on port 5000
"""

import argparse
import os
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))


def main():
    parser = argparse.ArgumentParser(description="GPS Tracker Backend Server")
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=8000,
        help="Port to run server on (default: 8000)"
    )
    parser.add_argument(
        "--host", "-H",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for all interfaces)"
    )
    parser.add_argument(
        "--accuracy",
        type=float,
        default=None,
        help="Reject fixes less accurate than this many meters (default: 50)"
    )
    parser.add_argument(
        "--movement",
        type=float,
        default=None,
        help="Minimum movement in meters before a fix extends the path (default: 3)"
    )
    parser.add_argument(
        "--max-path-points",
        type=int,
        default=None,
        help="Keep at most this many path points per session (default: unbounded)"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Run in debug mode"
    )

    args = parser.parse_args()

    # Settings reach the app through the environment (read at import time)
    if args.accuracy is not None:
        os.environ["GPSTRACK_ACCURACY_THRESHOLD_M"] = str(args.accuracy)
    if args.movement is not None:
        os.environ["GPSTRACK_MOVEMENT_THRESHOLD_M"] = str(args.movement)
    if args.max_path_points is not None:
        os.environ["GPSTRACK_MAX_PATH_POINTS"] = str(args.max_path_points)

    print(f"GPS Tracker Backend")
    print(f"=" * 40)
    print(f"Server: http://{args.host}:{args.port}")
    print(f"=" * 40)

    print("\nAPI Endpoints:")
    print("  GET    /                         - Health check")
    print("  GET    /health                   - Detailed health")
    print("  GET    /position-options         - Watch options for clients")
    print("  POST   /sessions                 - Create a session")
    print("  GET    /sessions                 - List sessions")
    print("  GET    /sessions/{id}            - Session snapshot")
    print("  POST   /sessions/{id}/start      - Start tracking")
    print("  POST   /sessions/{id}/samples    - Push fixes")
    print("  POST   /sessions/{id}/stop       - Stop tracking")
    print("  POST   /sessions/{id}/error      - Report a fatal source error")
    print("  POST   /sessions/{id}/reset      - Reset to idle")
    print("  GET    /sessions/{id}/geojson    - Path as GeoJSON")
    print("  GET    /sessions/{id}/summary    - Formatted statistics")
    print("\nStarting server...")

    import uvicorn

    uvicorn.run(
        "tracker.main:app",
        host=args.host,
        port=args.port,
        reload=args.debug,
        log_level="debug" if args.debug else "info",
    )


if __name__ == "__main__":
    main()
