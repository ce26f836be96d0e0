#!/usr/bin/env python3
"""
N'GNA SÔRÔ! Loan Engine Entry Point

Starts the FastAPI server exposing schedule generation and the daily
delinquency jobs.
"""

import sys

from ngna_soro.config import get_config
from ngna_soro.logging_config import setup_logging
from ngna_soro.api import run_server


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, config.log_format)

    logger.info(f"Starting loan engine on {config.api_host}:{config.api_port}")
    logger.info(f"Storage: {config.database_url}")

    try:
        run_server(
            host=config.api_host,
            port=config.api_port,
            debug=False,  # Set to True for development
            log_level=config.log_level
        )
    except KeyboardInterrupt:
        logger.info("Shutting down loan engine")
    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)
