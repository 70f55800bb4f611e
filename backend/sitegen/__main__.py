"""
Run the API server locally.

    python -m sitegen [--host 0.0.0.0] [--port 8000] [--reload]

Loads the repo-root .env into the process environment first so the SDKs
see the same keys as Settings.
"""

import argparse
import os

from dotenv import load_dotenv

load_dotenv(os.path.join(os.path.dirname(__file__), "..", "..", ".env"))

import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Landing page generator API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args()

    uvicorn.run("sitegen.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
