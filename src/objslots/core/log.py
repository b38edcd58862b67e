from __future__ import annotations

import json
import logging
import os
import sys
from typing import Optional

from dotenv import find_dotenv, load_dotenv

_configured = False


class JsonHandler(logging.StreamHandler):
    """JSON-lines logger for stdout."""
    def __init__(self):
        super().__init__(stream=sys.stdout)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            obj = {
                "ts": record.created,
                "lvl": record.levelname,
                "name": record.name,
                "thread": record.threadName,
                "msg": record.getMessage(),
            }
            if record.exc_info:
                obj["exc"] = logging.Formatter().formatException(record.exc_info)
            self.stream.write(json.dumps(obj, ensure_ascii=False, default=str) + "\n")
            self.flush()
        except Exception:  # pragma: no cover
            self.handleError(record)


def _level(name: str) -> int:
    lvl = logging.getLevelName(name.upper())
    return lvl if isinstance(lvl, int) else logging.INFO


def setup(level: Optional[str] = None, json_mode: Optional[bool] = None, *, force: bool = False) -> None:
    """Configure the root logger.
    - LOG_LEVEL / LOG_JSON (environment or .env) are used when args are None
    - a second call is a no-op unless force=True
    """
    global _configured
    if _configured and not force:
        return

    load_dotenv(find_dotenv(usecwd=True))

    py_level = _level(level or os.getenv("LOG_LEVEL", "INFO"))
    json_flag = json_mode if json_mode is not None else (os.getenv("LOG_JSON", "0") == "1")

    root = logging.getLogger()
    # pytest reruns would otherwise stack handlers
    root.handlers.clear()
    root.setLevel(py_level)

    if json_flag:
        root.addHandler(JsonHandler())
    else:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(logging.Formatter(fmt="[%(asctime)s] %(levelname)s %(name)s (%(threadName)s) | %(message)s"))
        root.addHandler(handler)

    _configured = True


def get(name: str) -> logging.Logger:
    """Namespaced logger under ``objslots``."""
    if name == "objslots" or name.startswith("objslots."):
        return logging.getLogger(name)
    return logging.getLogger(f"objslots.{name}")


def set_level(level: str) -> None:
    logging.getLogger().setLevel(_level(level))
