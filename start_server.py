#!/usr/bin/env python3
"""Launch the checkout API with host, port and log level taken from MKT_* settings."""

import logging
import os
import sys

import uvicorn

SRC_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "src")


def main() -> int:
    if not os.path.isdir(SRC_PATH):
        print(f"❌ src directory not found at {SRC_PATH}", file=sys.stderr)
        return 1
    sys.path.insert(0, SRC_PATH)

    try:
        from marketplace.config import settings
        from marketplace.main import app
    except Exception:
        logging.exception("Failed to import the API application")
        return 1

    if settings.store_backend == "memory":
        print("⚠️  MKT_STORE_BACKEND=memory: orders are lost when the process exits", file=sys.stderr)
    if not settings.mapbox_access_token:
        print("⚠️  MKT_MAPBOX_ACCESS_TOKEN is not set: checkouts will use the fallback fee or block", file=sys.stderr)

    print(
        f"🚀 {settings.app_name} on {settings.server_host}:{settings.server_port} "
        f"(store={settings.store_backend}, profile={settings.mapbox_profile})",
        file=sys.stderr,
    )
    uvicorn.run(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
        proxy_headers=settings.server_proxy_headers,
        forwarded_allow_ips="*" if settings.server_proxy_headers else None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
