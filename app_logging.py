# app_logging.py

"""
Logging setup shared by the application modules. The log file written here is also
shown inside the UI through `get_app_log_content`.
"""

import logging
import os

LOG_FILE = os.getenv("JSD_LOG_FILE", "app.log")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
APP_LOGGER_NAME = "json_sync_diff"


def setup_logger(enable_logging: bool = True, console_logging: bool = True, file_logging: bool = True,
                 level: int = logging.INFO, log_file: str = None) -> logging.Logger:
    """
    Configures the root logger once and returns the application logger.

    Args:
        enable_logging (bool): When False, logging is disabled entirely.
        console_logging (bool): Attach a console handler.
        file_logging (bool): Attach a file handler writing to `log_file`.
        level (int): Root logging level.
        log_file (str, optional): Log file path. Defaults to JSD_LOG_FILE or "app.log".

    Returns:
        logging.Logger: The application logger.
    """
    root = logging.getLogger()
    if not enable_logging:
        logging.disable(logging.CRITICAL)
        return get_logger()

    logging.disable(logging.NOTSET)
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    # Handlers tagged by this module are replaced, so repeated calls do not duplicate output.
    for handler in list(root.handlers):
        if getattr(handler, "_jsd_handler", False):
            root.removeHandler(handler)
            handler.close()

    if console_logging:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        console_handler._jsd_handler = True
        root.addHandler(console_handler)

    if file_logging:
        file_handler = logging.FileHandler(log_file or LOG_FILE, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler._jsd_handler = True
        root.addHandler(file_handler)

    # Request-level chatter from the HTTP stack is only useful when debugging.
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))
    return get_logger()


def get_logger() -> logging.Logger:
    return logging.getLogger(APP_LOGGER_NAME)


def get_app_log_content(log_file: str = None) -> str:
    """
    Reads the content of the application log file, for display in the UI.

    Returns:
        str: The log content, or an error message if the file cannot be read.
    """
    log_file_path = log_file or LOG_FILE
    try:
        with open(log_file_path, "r", encoding="utf-8") as f:
            return f.read()
    except FileNotFoundError:
        return f"Error: {log_file_path} not found. File logging may be disabled."
    except OSError as e:
        return f"Error reading {log_file_path}: {e}"
