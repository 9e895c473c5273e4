import logging


def setup_logging(level: str = "INFO") -> None:
    """Attach one stream handler to the root logger and set its level."""
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; handlers are configured by `setup_logging`."""
    return logging.getLogger(name)
