"""userperm demo entrypoint.

Run with:
  python -m userperm
"""

import logging
import os

import uvicorn


def main() -> None:
    host = os.getenv("USERPERM_HOST", "127.0.0.1")
    port = int(os.getenv("USERPERM_PORT", "3000"))
    reload = os.getenv("USERPERM_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    logging.basicConfig(level=os.getenv("USERPERM_LOG_LEVEL", "INFO").upper())
    uvicorn.run("userperm.app:create_app", factory=True, host=host, port=port, reload=reload)


if __name__ == "__main__":
    main()
