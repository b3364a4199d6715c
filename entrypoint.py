import uvicorn

from config import get_settings
from logging_config import get_logger, setup_logging

settings = get_settings()
setup_logging(log_level=settings.log_level, log_file=settings.log_file)

logger = get_logger(__name__)

if __name__ == "__main__":
    logger.info(f"Signaling server starting on {settings.host}:{settings.port}")
    uvicorn.run("main:app", host=settings.host, port=settings.port, log_config=None)
