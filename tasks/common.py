import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path


def _get_console_logger():
    console_logger = logging.getLogger("console")
    if not console_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
        console_logger.addHandler(handler)
        console_logger.setLevel(logging.INFO)
        console_logger.propagate = False
    return console_logger


def _configure_run_logging(verbose=False):
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
    root.addHandler(console_handler)

    logging.getLogger('paramiko').setLevel(logging.WARNING)
    logging.getLogger('fabric').setLevel(logging.WARNING)
    logging.getLogger('invoke').setLevel(logging.WARNING)


def _parse_list(value):
    if not value:
        return None
    if isinstance(value, (list, tuple)):
        return list(value)
    return [v.strip() for v in value.split(',') if v.strip()]


@contextmanager
def _run_log_handler(task_name, timestamp=None, log_root="logs"):
    if timestamp is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    log_dir = Path(log_root) / task_name
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"{timestamp}.log"

    handler = logging.FileHandler(log_path)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))

    root = logging.getLogger()
    root.addHandler(handler)
    try:
        yield log_path
    finally:
        root.removeHandler(handler)
        handler.close()
