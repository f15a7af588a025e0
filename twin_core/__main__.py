"""本地开发入口：python -m twin_core"""

import uvicorn

from twin_core.config.settings import settings
from twin_core.infrastructure.logging.logger import logger


def main() -> None:
    logger.info(
        "Starting server",
        extra={"extra": {
            "port": settings.port,
            "storage": settings.storage_label,
            "openai_model": settings.openai_model,
        }},
    )
    uvicorn.run("twin_core.api.app:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
