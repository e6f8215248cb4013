#!/usr/bin/env python3
"""
Start the RAG relay API with uvicorn.

Loads a ``.env`` file first so configuration in ``ragrelay.core.config``
picks it up.
"""

import sys
from pathlib import Path
import argparse

from dotenv import load_dotenv


def main():
    parser = argparse.ArgumentParser(description='Run the RAG relay API server')
    parser.add_argument('--host', default='0.0.0.0',
                        help='Interface to bind (default: 0.0.0.0)')
    parser.add_argument('--port', type=int, default=3000,
                        help='Port to listen on (default: 3000)')
    parser.add_argument('--env-file', default='.env',
                        help='Environment file to load (default: .env)')
    parser.add_argument('--reload', action='store_true',
                        help='Reload on code changes (development only)')
    args = parser.parse_args()

    env_file = Path(args.env_file)
    if env_file.exists():
        load_dotenv(env_file)
        print(f"Loaded environment from {env_file}")

    # Import after .env is loaded: config reads the environment at import time
    import uvicorn
    from ragrelay.core.config import validate_config

    issues = validate_config()
    for issue in issues:
        print(f"WARNING: {issue}")

    print(f"Starting server on http://{args.host}:{args.port}")
    try:
        uvicorn.run("ragrelay.api.main:app", host=args.host, port=args.port, reload=args.reload)
    except KeyboardInterrupt:
        print("\nServer stopped")
        sys.exit(0)


if __name__ == '__main__':
    main()
