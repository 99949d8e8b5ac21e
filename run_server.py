#!/usr/bin/env python3
"""
Horizon Server - HTTP launcher
Runs the FastAPI app (analyze, economic data, OCR and chart routes) under uvicorn
"""
import logging
import sys

import uvicorn

from horizon.config import settings

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    logger.info("Starting Horizon server...")
    logger.info(f"Python {sys.version}, encoding={sys.getdefaultencoding()}")
    logger.info(f"HTTP server will run on http://{settings.http_host}:{settings.http_port}")
    uvicorn.run(
        "horizon.main:app",
        host=settings.http_host,
        port=settings.http_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
