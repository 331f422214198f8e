#!/usr/bin/env python3
"""CLI entry point for the Ollama tool agent."""

import asyncio
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from agent.config import load_config
from agent.exceptions import ConfigError
from cli.cli_app import CLIApp


def main() -> int:
    config_path = sys.argv[1] if len(sys.argv) > 1 else "config.json"
    try:
        config = load_config(config_path)
    except ConfigError as e:
        print(f"[Error] {e}")
        return 1

    app = CLIApp(config)
    try:
        return asyncio.run(app.run())
    except KeyboardInterrupt:
        print("\nGoodbye!")
        return 0


if __name__ == "__main__":
    sys.exit(main())
