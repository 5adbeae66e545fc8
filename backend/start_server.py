#!/usr/bin/env python3
"""
Development server startup script.
This script is designed for development and enables auto-reloading.
"""
import uvicorn
import sys
from pathlib import Path

# --- Path Setup ---
# Works whether it's run from the project root (`python backend/start_server.py`)
# or from the backend directory (`cd backend; python start_server.py`).

# The directory containing this script (`backend/`)
script_dir = Path(__file__).resolve().parent
# Make `bvtc` importable without installing the project
if str(script_dir) not in sys.path:
    sys.path.insert(0, str(script_dir))

from bvtc.config import API_BASE, HOST, PORT  # noqa: E402


def main():
    reload_dir_path = script_dir / "bvtc"

    print("🚀 Starting development server for BVTC front-end...")
    print(f"🔄 Auto-reload is enabled for the '{reload_dir_path.relative_to(script_dir.parent)}' directory.")
    print(f"🔗 Backend API: {API_BASE}")
    print(f"🌐 Service will be available at: http://localhost:{PORT}")
    print(f"📖 API documentation at: http://localhost:{PORT}/docs")
    print("-" * 50)

    try:
        uvicorn.run(
            "bvtc.main:app",
            host=HOST,
            port=PORT,
            reload=True,
            reload_dirs=[str(reload_dir_path)],
            app_dir=str(script_dir),
            log_level="info"
        )
    except KeyboardInterrupt:
        print("\n👋 Server has been stopped.")
    except ImportError as e:
        print(f"\n❌ Error: Could not import the application: {e}")
        print("   Please ensure all dependencies are installed: pip install -e .")


if __name__ == "__main__":
    main()
