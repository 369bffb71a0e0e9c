#!/usr/bin/env python3
"""
Lendbook Entry Point

Starts the FastAPI server with the loan administration system.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from lendbook.api import run_server
from lendbook.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("Starting Lendbook...")
    print(f"Money in {config.default_currency}, all calculations use Decimal precision")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(debug=False)
    except KeyboardInterrupt:
        print("\nShutting down Lendbook...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
