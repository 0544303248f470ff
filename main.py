"""Taleweaver — server launcher."""

import argparse
import logging
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Taleweaver server")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Save and settings directory (default: ./data)")
    parser.add_argument("--reload", action="store_true",
                        help="Restart the server when source files change")
    parser.add_argument("--debug", action="store_true",
                        help="Log model calls and image events")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # create_app() reads DATA_DIR, also in the --reload worker process
    if args.data_dir:
        os.environ["DATA_DIR"] = str(args.data_dir.resolve())

    print(f"Starting Taleweaver on http://localhost:{PORT} ...")
    uvicorn.run(
        "taleweaver.app:create_app",
        factory=True,
        host=HOST,
        port=int(PORT),
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
