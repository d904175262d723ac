#!/usr/bin/env python3
"""
Loan Ledger Entry Point

Starts the FastAPI server with settings from LOAN_LEDGER_* environment variables.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from loan_ledger.api import run_server
from loan_ledger.config import get_config
from loan_ledger.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, config.log_format, config.log_file)
    logger.info(f"Starting Loan Ledger on {config.api_host}:{config.api_port} "
                f"({config.storage_backend} storage)")

    try:
        # Start the server
        run_server(
            host=config.api_host,
            port=config.api_port,
            debug=False  # Set to True for development
        )
    except KeyboardInterrupt:
        logger.info("Shutting down Loan Ledger")
    except Exception as e:
        logger.error(f"Error starting server: {e}", exc_info=True)
        sys.exit(1)
