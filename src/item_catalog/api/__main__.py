"""
item_catalog.api.__main__

Entrypoint for `python -m item_catalog.api` and the `item-catalog` script.

Responsibilities:
- Build the app from environment settings.
- Run uvicorn with its access log off; the request logging middleware owns
  request/response records.
"""

from __future__ import annotations

import uvicorn

from item_catalog.api.app import create_app
from item_catalog.settings import get_settings


def main() -> None:
    settings = get_settings()

    uvicorn.run(
        create_app(settings=settings),
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
        log_level=settings.log_level.lower(),
        access_log=False,
        # Client IPs in request records come from the reverse proxy's forwarding headers.
        proxy_headers=True,
        forwarded_allow_ips="*",
    )


if __name__ == "__main__":
    main()
