import logging


def setup_logging(level: str = 'INFO') -> None:
    formatter = logging.Formatter(
        fmt="[%(levelname)s] %(asctime)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    # Configure package logger only; leave uvicorn's handlers alone
    package_logger = logging.getLogger('nztides')
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    package_logger.handlers.clear()
    package_logger.addHandler(console_handler)
    package_logger.propagate = False
