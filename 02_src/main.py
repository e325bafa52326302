"""Main entry point for the cloud sample services."""

import argparse
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from cloudsamples.api import SAMPLES, create_fastapi_app
from cloudsamples.app import Application
from cloudsamples.config import APP_NAME_PROPERTY, SERVER_PORT_PROPERTY
from cloudsamples.logging_config import setup_logging


def main():
    """Run one sample service."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    parser = argparse.ArgumentParser(description="Run a cloud sample service")
    parser.add_argument(
        "sample",
        nargs="?",
        default=os.getenv("SAMPLE", "bus-node"),
        choices=sorted(SAMPLES),
    )
    args = parser.parse_args()

    setup_logging(service=args.sample)

    # Get configuration from environment
    api_host = os.getenv("API_HOST", "localhost")
    api_port = int(os.getenv("API_PORT", os.getenv("SERVER_PORT", "8080")))

    application = Application(
        properties={APP_NAME_PROPERTY: args.sample, SERVER_PORT_PROPERTY: api_port}
    )
    app = create_fastapi_app(args.sample, application)

    # Run with uvicorn
    uvicorn.run(
        app,
        host=api_host,
        port=api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
