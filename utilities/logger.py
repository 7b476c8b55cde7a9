import logging
import logging.handlers
import os

LOGS_DIR = os.environ.get(
    "SUSCEPTIBILITY_LOG_DIR",
    os.path.join(os.path.dirname(os.path.dirname(__file__)), "logs"),
)
os.makedirs(LOGS_DIR, exist_ok=True)


# Configure the logger
def setup_logger(name: str = "susceptibility") -> logging.Logger:
    """
    Configure and return a logger instance for the susceptibility engine.

    logger.debug("Empty reduction coerced")  # Only appears in log file
    logger.info("Slope derived")             # Appears in both terminal and log file
    logger.error("Weight set rejected")      # Appears in both terminal and log file

    Args:
        name (str): Name of the logger. Defaults to 'susceptibility'

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(logging.DEBUG)

        # Create formatters
        file_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
        )
        console_formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

        # File handler (rotating file handler to manage log size)
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(LOGS_DIR, "susceptibility.log"),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(file_formatter)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(console_formatter)

        logger.addHandler(file_handler)
        logger.addHandler(console_handler)
        logger.propagate = False

    return logger

