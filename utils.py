# utils.py
"""
Configuration and logging helpers shared by the entry point, the
benchmark and the tests.

The engine modules never configure logging themselves; they only call
the root `logging` functions. Whoever runs the engine calls
setup_logging() once with the loaded configuration.
"""
import logging
import logging.handlers
import json
import os
from typing import Dict, Any, List

# --- Data Contracts ---
#
# setup_logging(config: Dict[str, Any]) -> None:
#   - Inputs:
#     - config: the full configuration. Its "logging" section may hold
#       "level", "format", "log_file", "max_bytes" and "backup_count".
#       A null or empty "log_file" means console output only.
#   - Side Effects: Replaces all handlers of the root logger. Creates the
#     directory of the log file if needed. Caps the numba compiler logger
#     at WARNING, since it floods DEBUG output during JIT compilation.
#
# load_config(path: str) -> Dict[str, Any]:
#   - Outputs: The parsed configuration dictionary.
#   - Errors: FileNotFoundError and json.JSONDecodeError are logged and
#     re-raised. A document that is not a JSON object raises ValueError.
#
# get_section(config, name) -> Dict[str, Any]:
#   - Outputs: config[name], or an empty dict if the section is absent.

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
LOG_FILE = 'logs/chaos.log'
LOG_MAX_BYTES = 1024 * 1024
LOG_BACKUP_COUNT = 5


def _build_handlers(log_config: Dict[str, Any]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler()]

    log_file_path = log_config.get('log_file', LOG_FILE)
    if log_file_path:
        log_dir = os.path.dirname(log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file_path,
            maxBytes=int(log_config.get('max_bytes', LOG_MAX_BYTES)),
            backupCount=int(log_config.get('backup_count', LOG_BACKUP_COUNT)),
        ))
    return handlers


def setup_logging(config: Dict[str, Any]) -> None:
    """
    Installs console (and optionally rotating file) logging on the root logger.
    """
    log_config = get_section(config, 'logging')
    log_level = log_config.get('level', 'INFO').upper()
    formatter = logging.Formatter(log_config.get('format', LOG_FORMAT))

    root = logging.getLogger()
    root.setLevel(log_level)
    # Handlers of an earlier call are dropped, not stacked
    root.handlers.clear()

    handlers = _build_handlers(log_config)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    logging.getLogger('numba').setLevel(logging.WARNING)

    logging.info(f"Logging initialized at level {log_level} with {len(handlers)} handler(s).")
    if len(handlers) > 1:
        logging.debug(f"Log file path: {log_config.get('log_file', LOG_FILE)}")


def load_config(path: str) -> Dict[str, Any]:
    """Reads the JSON run configuration."""
    logging.info(f"Loading configuration from {path}...")
    try:
        with open(path, 'r') as f:
            config = json.load(f)
    except FileNotFoundError:
        logging.error(f"Configuration file not found at {path}.")
        raise
    except json.JSONDecodeError as e:
        logging.error(f"Error decoding JSON from {path}: {e}")
        raise
    if not isinstance(config, dict):
        msg = f"Configuration error: {path} must contain a JSON object, got {type(config).__name__}."
        logging.critical(msg)
        raise ValueError(msg)
    logging.info(f"Configuration loaded: sections {sorted(config)}.")
    return config


def get_section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    return config.get(name) or {}
