#!/usr/bin/env python3
"""
Production server runner for the Semantic Model Chat API.

Runs without reload and with a single worker: the chat session (connection,
snapshot and history) lives in process memory.
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

project_root = Path(__file__).parent.parent

env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)
    print(f"✓ Loaded environment variables from {env_file}")
else:
    print(f"⚠ No .env file found at {env_file}")
    print("  Ensure environment variables are set via your deployment system")


if __name__ == "__main__":
    import uvicorn
    from semantic_chat.config import get_settings
    from semantic_chat.utils.connection_args import parse_connection_args

    server, database = parse_connection_args(sys.argv[1:])
    if server:
        os.environ["CONNECTION__SERVER"] = server
    if database:
        os.environ["CONNECTION__DATABASE"] = database

    settings = get_settings()
    server_config = settings.server

    production_config = {
        "app": server_config.app_module,
        "host": server_config.host,
        "port": server_config.port,
        "workers": 1,  # Sessions are per process
        "reload": False,
        "log_config": None,  # Use our structured logging
        "access_log": False,  # We handle access logging via middleware
        "server_header": False,
        "date_header": False,
    }

    print("🚀 Starting Semantic Model Chat production server...")
    print(f"⚙️  Configuration: {server_config.app_module}")
    print(f"🌐 Listening: {server_config.host}:{server_config.port}")
    print(f"📊 API Documentation: http://{server_config.host}:{server_config.port}/docs")
    print()

    uvicorn.run(**production_config)
