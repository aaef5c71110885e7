"""
Logging setup shared by the Lambda handler and the operator CLI.

Every record carries a request_id so the lock, fetch, write and audit steps of
one policy update can be correlated in CloudWatch Logs.
"""

from __future__ import annotations

import logging


class _RequestIdFilter(logging.Filter):
    """
    Ensure every log record has a request_id attribute for formatting.
    """

    def __init__(self, request_id: str) -> None:
        super().__init__()
        self._request_id = request_id

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 - logging uses `filter` name
        if not hasattr(record, "request_id"):
            record.request_id = self._request_id
        return True


def _coerce_log_level(level: str) -> int:
    level_upper = (level or "").strip().upper()
    if not level_upper:
        return logging.INFO
    return logging._nameToLevel.get(level_upper, logging.INFO)


def configure_logging(*, request_id: str, level: str = "INFO") -> logging.LoggerAdapter:
    """
    Configure logging for one handler invocation or CLI run.

    - Uses root logger configuration only if nothing is configured yet
      (the Lambda runtime installs its own handler).
    - Adds a request_id to all records.
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=_coerce_log_level(level),
            format="%(asctime)s %(levelname)s [%(name)s] [req=%(request_id)s] %(message)s",
        )
    else:
        root.setLevel(_coerce_log_level(level))

    # Warm Lambda containers call this once per invocation; wrap the original
    # factory, not the previous invocation's wrapper.
    old_factory = logging.getLogRecordFactory()
    base_factory = getattr(old_factory, "_base_factory", old_factory)

    def request_record_factory(*args, **kwargs):  # type: ignore[no-untyped-def]
        record = base_factory(*args, **kwargs)
        record.request_id = request_id
        return record

    request_record_factory._base_factory = base_factory  # type: ignore[attr-defined]
    logging.setLogRecordFactory(request_record_factory)

    for h in root.handlers:
        h.filters = [f for f in h.filters if not isinstance(f, _RequestIdFilter)]
        h.addFilter(_RequestIdFilter(request_id))

    logger = logging.getLogger("egress_policy")
    return logging.LoggerAdapter(logger, {})
