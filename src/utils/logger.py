import sys
from collections.abc import Iterable
from pathlib import Path

from loguru import logger

REDACTED = "<redacted>"


def _redactor(secrets: Iterable[str]):
    masked = [s for s in secrets if s]

    def _patch(record) -> None:
        message = record["message"]
        for secret in masked:
            if secret in message:
                message = message.replace(secret, REDACTED)
        record["message"] = message

    return _patch


def setup_logger(
    *,
    level: str = "INFO",
    json_logs: bool = False,
    log_dir: str | Path = "logs",
    secrets: Iterable[str] = (),
) -> None:
    """Configure loguru for a launch run.

    Console sink at ``level`` (JSON lines when ``json_logs``), plus a DEBUG
    file per day under ``log_dir`` so a failed launch can be replayed step by
    step. Any string in ``secrets`` (configured private keys) is masked in
    every message before it reaches a sink.
    """
    logger.remove()
    logger.configure(patcher=_redactor(secrets))

    if json_logs:
        logger.add(sys.stdout, serialize=True, level=level.upper())
    else:
        logger.add(
            sys.stdout,
            format=(
                "<green>{time:HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
                "<level>{message}</level>"
            ),
            level=level.upper(),
            colorize=True,
        )

    logger.add(
        str(Path(log_dir) / "launch_{time:YYYY-MM-DD}.log"),
        rotation="50 MB",
        retention="7 days",
        compression="gz",
        level="DEBUG",
        serialize=json_logs,
    )
