"""Run the relay: ``python -m passage``."""

import logging

import uvicorn
from dotenv import load_dotenv

from passage.config import Settings
from passage.log_config import setup_logging
from passage.server.app import create_app


def main() -> None:
    load_dotenv()
    settings = Settings()
    setup_logging(settings.log_level)

    app = create_app(settings)
    logging.getLogger(__name__).info(
        f"Serving {len(settings.providers)} providers on "
        f"http://{settings.host}:{settings.port}"
    )
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
