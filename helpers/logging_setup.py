import sys
from loguru import logger


def configure_logging(name, level="INFO"):
    """Configure loguru for all modules of one process"""
    logger.remove()  # Remove default handler
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )
    logger.add(
        f"logs/{name}_{{time}}.log",
        level="DEBUG",
        rotation="500 MB",
        retention="1 week",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        enqueue=True,  # Makes it thread-safe
        backtrace=True,  # Detailed error traces
        diagnose=False
    )
