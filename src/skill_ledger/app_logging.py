"""Logging configuration helpers."""

import logging
from collections.abc import Iterable

REDACTED = "[REDACTED]"


class RedactSecretsFilter(logging.Filter):
    """Mask known secret values in formatted log messages."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        self.secrets = tuple(secret for secret in secrets if secret)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        message = record.getMessage()
        redacted = message
        for secret in self.secrets:
            redacted = redacted.replace(secret, REDACTED)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: str = "INFO", secrets: Iterable[str] = ()) -> None:
    """Configure the skill_ledger logger with a single stream handler.

    Repeated calls update the level and the redacted secrets in place.
    """
    logger = logging.getLogger("skill_ledger")
    logger.setLevel(level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s: %(name)s: %(message)s")
        )
        logger.addHandler(handler)
        logger.propagate = False
    for handler in logger.handlers:
        for existing in [
            f for f in handler.filters if isinstance(f, RedactSecretsFilter)
        ]:
            handler.removeFilter(existing)
        handler.addFilter(RedactSecretsFilter(secrets))
