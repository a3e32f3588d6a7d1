#!/usr/bin/env python3
"""
Core Ledger Entry Point

Loads saved ledger state (or starts empty), serves the HTTP API and saves
the ledger again on shutdown. Settings come from LEDGER_* environment
variables or a .env file.
"""

import sys

from core_ledger.api import run_server
from core_ledger.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("Starting Core Ledger...")
    print(f"State: {config.state_backend} at {config.state_file}")
    print(f"API available at: http://localhost:{config.api_port}")
    print()

    try:
        run_server(config)
    except KeyboardInterrupt:
        print("\nShutting down Core Ledger...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
