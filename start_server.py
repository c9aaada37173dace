#!/usr/bin/env python3

"""
ANC Plus Server Launcher

Checks the environment and launches the FastAPI server.
"""

import shutil
import sys
from pathlib import Path

current_dir = Path(__file__).parent

from ancplus.api.app import main
from ancplus.config import AncConfig

if __name__ == "__main__":
    print("ANC Plus Stream Separation Server")
    print("=" * 50)
    print()

    if not (current_dir / "ancplus").exists():
        print("Error: ancplus package not found!")
        print("Make sure you're running this script from the project root.")
        sys.exit(1)

    venv_path = current_dir / ".venv"
    if venv_path.exists() and sys.prefix == sys.base_prefix:
        print("Warning: Virtual environment not activated!")
        print("Run: source .venv/bin/activate")
        print()

    config = AncConfig.from_env()
    if shutil.which(config.extraction.ffmpeg_binary):
        print("FFmpeg found")
    else:
        print("Warning: FFmpeg not found. Video extraction and non-native audio formats are unavailable.")

    print()
    print("Usage:")
    print(f"  - API Documentation: http://localhost:{config.server.port}/docs")
    print(f"  - Health Check: http://localhost:{config.server.port}/health")
    print()
    print("Press Ctrl+C to stop the server")
    print()

    try:
        main()
    except KeyboardInterrupt:
        print("\nServer stopped by user")
