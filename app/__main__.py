"""Run the relay with uvicorn: ``python -m app``."""

import uvicorn

from app.config import settings
from app.main import configure_logging


def main() -> None:
    configure_logging()
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
