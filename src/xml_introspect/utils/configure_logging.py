import logging
import sys
from typing import Dict, Optional, Union

from tqdm import tqdm

LevelType = Union[str, int]

DEFAULT_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"


class LogWithTqdm(logging.Handler):
    """
    Routes log records through `tqdm.write()` so warnings emitted while a
    large document is being analyzed don't tear the progress bar apart.
    """
    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stderr)
            self.flush()
        except Exception:
            self.handleError(record)


def _to_level(level: LevelType, fallback: int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), fallback)
    return level


def configure_logger(
        general_level: LevelType = 'WARNING',
        module_specific_levels: Optional[Dict[str, LevelType]] = None,
        silenced_loggers: Optional[Dict[str, LevelType]] = None,
        fmt: str = DEFAULT_FORMAT,
) -> logging.Handler:
    """
    Installs a single tqdm-aware handler on the root logger and applies
    per-module levels. Calling it again replaces the previous handler.
    """
    handler = LogWithTqdm()
    handler.setFormatter(logging.Formatter(fmt))

    root_logger = logging.getLogger()
    root_logger.setLevel(_to_level(general_level, logging.WARNING))
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name, level in (module_specific_levels or {}).items():
        logging.getLogger(name).setLevel(_to_level(level, logging.INFO))

    # Noisy third-party loggers
    for name, level in (silenced_loggers or {}).items():
        logging.getLogger(name).setLevel(_to_level(level, logging.CRITICAL))

    return handler
