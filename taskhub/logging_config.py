from __future__ import annotations

import logging

AUDIT_LOGGER = "taskhub.authz"


def configure_app_logging(level: str = "INFO", audit_level: str | None = None) -> None:
    """
    Set levels for the taskhub loggers; handlers are left to the server (uvicorn).

    `taskhub.authz` carries the decision audit trail: allows at DEBUG, denials at
    WARNING. `audit_level` (`TASKHUB_AUDIT_LOG_LEVEL`) tunes it apart from the rest,
    e.g. DEBUG to trace every allow without flooding the app logs.
    """

    package = logging.getLogger("taskhub")
    package.setLevel(level.upper())
    package.propagate = True

    audit = logging.getLogger(AUDIT_LOGGER)
    audit.setLevel(audit_level.upper() if audit_level else logging.NOTSET)
