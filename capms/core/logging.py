import logging

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once for the API process."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # uvicorn access lines are noisy next to the engine log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
