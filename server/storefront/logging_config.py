# ─────────────────────────────────────────────────────────────────────────────
# Logging — one stdout stream for storefront, uvicorn, and SDK records
# ─────────────────────────────────────────────────────────────────────────────
# Storefront modules log through structlog; uvicorn, SQLAlchemy, stripe and
# the Google client log through stdlib. Both end up on the same handler with
# the same fields, so a checkout or a 429 can be followed by request_id.


import logging
import sys

import structlog

# These log every outbound call at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "stripe", "uvicorn.access", "google.auth")


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Install the storefront log pipeline. Called from create_app.

    json_output=True (LOG_JSON) emits one JSON object per event for the
    deployed service; False renders colored lines for a local shell.
    """
    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    output: structlog.types.Processor
    if json_output:
        output = structlog.processors.JSONRenderer()
    else:
        output = structlog.dev.ConsoleRenderer()

    # Stdlib records (uvicorn, sqlalchemy, stripe) run through pre_chain here
    stdout = logging.StreamHandler(sys.stdout)
    stdout.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, output],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(stdout)
    root.setLevel(getattr(logging, log_level.upper()))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
