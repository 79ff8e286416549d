import logging
import sys
from typing import Optional

from .config import settings


def setup_logging(level: Optional[str] = None):
    logging.basicConfig(
        stream=sys.stdout,
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
