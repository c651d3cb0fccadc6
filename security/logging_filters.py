from __future__ import annotations

import logging
import os
from typing import Iterable, List


SENSITIVE_ENV_VARS: Iterable[str] = (
    "ADMIN_TOKEN",
    "CSRF_TOKEN",
)


def _secret_values() -> List[str]:
    values = [os.getenv(k) or "" for k in SENSITIVE_ENV_VARS]
    values += [v for k, v in os.environ.items() if k.endswith("_TOKEN") and v]
    # Longest first so a secret containing another is masked whole
    return sorted({v for v in values if v}, key=len, reverse=True)


class RedactSecretsFilter(logging.Filter):
    """Mask configured token values in log messages and their string args."""

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self._secrets = _secret_values()

    def redact(self, text: str) -> str:
        for s in self._secrets:
            text = text.replace(s, "***")
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        if isinstance(record.msg, str):
            record.msg = self.redact(record.msg)
        # uvicorn.access formats a positional tuple; keep its shape
        if isinstance(record.args, tuple):
            record.args = tuple(self.redact(a) if isinstance(a, str) else a for a in record.args)
        elif isinstance(record.args, dict):
            record.args = {k: (self.redact(v) if isinstance(v, str) else v) for k, v in record.args.items()}
        return True


def install_redaction(logger_names: Iterable[str] = ("uvicorn", "uvicorn.error", "uvicorn.access")) -> RedactSecretsFilter:
    filt = RedactSecretsFilter()
    for name in logger_names:
        logging.getLogger(name).addFilter(filt)
    return filt
