#!/usr/bin/env python3
"""
Run the RUNE Deal Pipeline web server locally.
"""

import uvicorn

from utils.config import Config


def main():
    """Start the web server."""
    config = Config.load()

    print(f"Starting RUNE Deal Pipeline on http://{config.host}:{config.port}")
    print(f"Extractor: {config.extractor}, poll window: {config.poll_window_seconds:.2f}s")
    print("Press Ctrl+C to stop")

    uvicorn.run(
        "web.app:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
