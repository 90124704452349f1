"""
Structured logging for the voice companion.

Every module logs through `get_logger("<component>")`; records carry the
component name so one console line shows which part of the pipeline spoke:

    [14:02:11.532] [ℹ️  INFO      ] [session      ] LISTENING → TRANSCRIBING
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional


LOGGER_NAME = 'voice_companion'

# Third-party loggers that are noisy at INFO
NOISY_LOGGERS = ('aiohttp', 'asyncio', 'urllib3', 'comtypes')

# level name -> (ANSI color, emoji)
LEVEL_STYLES = {
    'DEBUG': ('\033[36m', '🔍'),
    'INFO': ('\033[32m', 'ℹ️ '),
    'WARNING': ('\033[33m', '⚠️ '),
    'ERROR': ('\033[31m', '❌'),
    'CRITICAL': ('\033[35m', '💀'),
}
RESET = '\033[0m'


class StructuredFormatter(logging.Formatter):
    """Formats records as `[time] [level] [component] message`."""

    def __init__(self, use_colors: bool = True, use_emojis: bool = True):
        super().__init__()
        self.use_colors = use_colors
        self.use_emojis = use_emojis

    def _level(self, levelname: str) -> str:
        color, emoji = LEVEL_STYLES.get(levelname, ('', ''))
        text = f"{emoji} {levelname}" if self.use_emojis and emoji else levelname
        text = f"{text:12}"
        if self.use_colors and color and sys.stdout.isatty():
            text = f"{color}{text}{RESET}"
        return text

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]
        component = getattr(record, 'component', 'general')

        line = f"[{timestamp}] [{self._level(record.levelname)}] [{component:13}] {record.getMessage()}"
        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


class ComponentLogger(logging.LoggerAdapter):
    """Adapter that stamps every record with its component name."""

    def __init__(self, logger: logging.Logger, component: str):
        super().__init__(logger, {'component': component})
        self.component = component

    def process(self, msg, kwargs):
        kwargs['extra'] = {**kwargs.get('extra', {}), 'component': self.component}
        return msg, kwargs


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    use_colors: bool = True,
    use_emojis: bool = True,
    quiet: Iterable[str] = NOISY_LOGGERS
) -> logging.Logger:
    """
    Configure console (and optional file) output for the companion.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_file: Also write plain-text logs here
        use_colors: ANSI colors on a terminal
        use_emojis: Emoji level markers on the console
        quiet: Third-party loggers raised to WARNING

    Raises:
        ValueError: If the level name is unknown
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(StructuredFormatter(use_colors=use_colors, use_emojis=use_emojis))
    logger.addHandler(console)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(StructuredFormatter(use_colors=False, use_emojis=False))
        logger.addHandler(file_handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


def get_logger(component: str) -> ComponentLogger:
    """Logger for one component, e.g. "session" or "transcription"."""
    return ComponentLogger(logging.getLogger(LOGGER_NAME), component)
