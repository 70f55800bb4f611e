import logging
import sys


class ProjectFormatter(logging.Formatter):
    """Formatter that tolerates records without a ``project`` extra."""
    def format(self, record):
        if not hasattr(record, "project"):
            record.project = "-"
        return super().format(record)


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ProjectFormatter(
        "%(asctime)s %(levelname)s %(name)s [project=%(project)s] - %(message)s"
    ))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[handler],
    )

    # Keep SDK request chatter out of the generation log
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
