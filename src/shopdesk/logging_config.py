from __future__ import annotations

import json
import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

# channel logger -> dedicated file, on top of app.log/errors.log
CHANNELS = {
    "shopdesk.sales": "sales.log",
    "shopdesk.dashboard": "dashboard.log",
    "shopdesk.http": "http.log",
}

_PAIR_RE = re.compile(r"(\w+)=(\S+)")


def split_event(message: str) -> tuple[str, dict[str, str]]:
    """``"sale_submitted qty=3 amount=300"`` -> ``("sale_submitted", {"qty": "3", "amount": "300"})``."""
    head, _, rest = message.partition(" ")
    if "=" in head:
        return "", dict(_PAIR_RE.findall(message))
    return head, dict(_PAIR_RE.findall(rest))


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        event, fields = split_event(message)
        payload = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "event": event,
            "fields": fields,
            "message": message,
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _file_handler(path: Path, level: int) -> RotatingFileHandler:
    fh = RotatingFileHandler(path, maxBytes=2_000_000, backupCount=5, encoding="utf-8")
    fh.setFormatter(JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
    fh.setLevel(level)
    return fh


def setup_logging(logs_dir: Path, level: int = logging.INFO, console_level: int | None = logging.WARNING) -> None:
    """Route records to rotating JSON files; warnings also go to stderr for the CLI."""
    logs_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    if root.handlers:
        return

    root.addHandler(_file_handler(logs_dir / "app.log", level))
    root.addHandler(_file_handler(logs_dir / "errors.log", logging.ERROR))
    if console_level is not None:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        console.setLevel(console_level)
        root.addHandler(console)

    for channel, filename in CHANNELS.items():
        logger = logging.getLogger(channel)
        logger.addHandler(_file_handler(logs_dir / filename, level))
        logger.setLevel(level)
