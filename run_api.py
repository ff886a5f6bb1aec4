#!/usr/bin/env python3
"""
Script to run the Tenant Book Catalog API server.
"""

import uvicorn

from api.config import get_config


def main():
    """Run the API server."""
    config = get_config()
    print("Starting Tenant Book Catalog API Server")
    print(f"Host: {config.host}")
    print(f"Port: {config.port}")
    print(f"Debug: {config.debug}")
    print(f"Token lifetime: {config.token_lifetime_seconds}s")
    print("=" * 50)

    uvicorn.run(
        "api.main:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()
