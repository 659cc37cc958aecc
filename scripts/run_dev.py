#!/usr/bin/env python3
"""
Development server runner for the Semantic Model Chat API.

Starts the FastAPI development server with hot reloading and .env loading.

The host application launches external tools with a connection string
argument; when one is given, the session connects on startup:

    python scripts/run_dev.py "Server=localhost:54321;Database=5f1c2a9e-..."
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

project_root = Path(__file__).parent.parent
src_path = project_root / "src"

env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)
    print(f"✓ Loaded environment variables from {env_file}")
else:
    print(f"⚠ No .env file found at {env_file}")
    print("  Chat needs CHAT__API_KEY; connect via POST /api/v1/session/connect")


if __name__ == "__main__":
    import uvicorn
    from semantic_chat.config import get_settings
    from semantic_chat.utils.connection_args import parse_connection_args

    # Connection arguments win over .env; the reloader child inherits them
    server, database = parse_connection_args(sys.argv[1:])
    if server:
        os.environ["CONNECTION__SERVER"] = server
    if database:
        os.environ["CONNECTION__DATABASE"] = database

    settings = get_settings()
    server_config = settings.server

    print("🚀 Starting Semantic Model Chat development server...")
    print(f"📊 API Documentation: http://{server_config.host}:{server_config.port}/docs")
    print(f"🔍 Health Check: http://{server_config.host}:{server_config.port}/health")
    if settings.connection.server:
        print(f"🔌 Semantic model: {settings.connection.server} / {settings.connection.database}")
    else:
        print("🔌 Standalone mode: no semantic model connection configured")
    print()

    uvicorn.run(
        server_config.app_module,
        host=server_config.host,
        port=server_config.port,
        reload=server_config.reload,
        reload_dirs=[str(src_path)],
        log_config=None,  # Use our structured logging
        access_log=False  # We handle access logging via middleware
    )
