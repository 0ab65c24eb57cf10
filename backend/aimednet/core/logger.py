import logging
import sys
from pathlib import Path


class LoggerConfig:
    """Configuration for logger singleton"""

    def __init__(self):
        self.logger = logging.getLogger("aimednet")
        if not self.logger.handlers:
            self._setup_logging()

    def _setup_logging(self):
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        )

        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)

        log_file = Path("aimednet.log")
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        self.logger.addHandler(file_handler)

        self.logger.addHandler(console)
        self.logger.setLevel(logging.INFO)

    def get_logger(self):
        return self.logger


logger_config = LoggerConfig()
logger = logger_config.get_logger()


def get_logger(name: str | None = None, override: logging.Logger | None = None):
    """Return an injected logger, or a child of the application logger."""
    if override is not None:
        return override
    if not name:
        return logger
    return logger.getChild(name)
