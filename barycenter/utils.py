import os
import json
import copy
import datetime as dt
import logging
from logging.handlers import TimedRotatingFileHandler
from typing import Any, Dict, Optional

import yaml
from jsonschema import validate, Draft202012Validator
from jsonschema.exceptions import ValidationError

# ---------- Duration helpers ----------

def format_duration(seconds: float) -> str:
    """Render an elapsed time the way a human reads it (``850µs``, ``12.5ms``, ``1.204s``)."""
    if seconds < 0:
        seconds = 0.0
    if seconds < 1e-6:
        return f"{seconds * 1e9:.0f}ns"
    if seconds < 1e-3:
        return f"{seconds * 1e6:.3g}µs"
    if seconds < 1.0:
        return f"{seconds * 1e3:.4g}ms"
    if seconds < 60.0:
        return f"{seconds:.4g}s"
    minutes, rest = divmod(seconds, 60.0)
    return f"{int(minutes)}m{rest:.3f}s"

# ---------- Config ----------

DEFAULT_CONFIG: Dict[str, Any] = {
    "ingest": {
        "mode": "concurrent",
        "workers": 8,
        "buffer_size": 128,
        "max_in_flight": 1024,
        "strict": False,
    },
    "reduce": {
        "strategy": "sequential",
        "workers": 4,
        "zero_mass": "raise",
    },
    "output": {
        "format": "text",
    },
}

def load_file(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()

def validate_config(cfg: dict):
    here = os.path.dirname(os.path.abspath(__file__))
    schema_path = os.path.join(here, "schemas", "config.schema.json")
    schema = json.loads(load_file(schema_path))
    try:
        validate(instance=cfg, schema=schema, cls=Draft202012Validator)
    except ValidationError as e:
        raise ValueError(f"Config validation error: {e.message} at {list(e.path)}") from e

def merge_config(base: Dict[str, Any], extra: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Deep-merge ``extra`` over a copy of ``base``; sections merge key by key."""
    out = copy.deepcopy(base)
    for key, value in (extra or {}).items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = merge_config(out[key], value)
        else:
            out[key] = copy.deepcopy(value)
    return out

def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load an optional YAML config, merge it over the defaults and validate it.

    An empty file is treated as "no overrides".
    """
    user_cfg: Dict[str, Any] = {}
    if path:
        try:
            user_cfg = yaml.safe_load(load_file(path)) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Config validation error: invalid YAML in {path}: {e}") from e
        if not isinstance(user_cfg, dict):
            raise ValueError(f"Config validation error: top level of {path} must be a mapping")
    cfg = merge_config(DEFAULT_CONFIG, user_cfg)
    validate_config(cfg)
    return cfg

# ---------- Logging ----------

_LOGGER_INITIALIZED = False

class JsonFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "ts": dt.datetime.fromtimestamp(record.created, dt.timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)

def _build_logger():
    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    # File logging only when a directory is requested; stdout is reserved for the report
    log_dir = os.getenv("LOG_DIR")
    json_mode = os.getenv("LOG_JSON", "false").lower() == "true"

    logger = logging.getLogger()
    logger.setLevel(getattr(logging, level, logging.INFO))

    if json_mode:
        fmt = JsonFormatter()
    else:
        fmt = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")

    ch = logging.StreamHandler()
    ch.setLevel(logger.level)
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        fh = TimedRotatingFileHandler(os.path.join(log_dir, "barycenter.log"), when="D", backupCount=7, encoding="utf-8")
        fh.setLevel(logger.level)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    _LOGGER_INITIALIZED = True

def get_logger(name: str = None) -> logging.Logger:
    _build_logger()
    return logging.getLogger(name if name else __name__)
