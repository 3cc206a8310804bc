# cronq/core/logging.py
import logging
import sys
from datetime import datetime

# Module-level default log level, can be changed by set_default_level()
_default_level: int = logging.INFO


class ColoredFormatter(logging.Formatter):
    """
    One line per record: time, component and level in fixed-width columns,
    then the message. Tracebacks follow on the next lines.
    """

    RESET = '\033[0m'
    TIME_COLOR = '\033[94m'
    TEXT_COLOR = '\033[97m'
    LEVEL_COLORS = {
        logging.DEBUG: '\033[90m',
        logging.INFO: '\033[92m',
        logging.WARNING: '\033[93m',
        logging.ERROR: '\033[91m',
        logging.CRITICAL: '\033[1;91m',
    }

    # Fits '[maintenance]' and '[claimer]' style component tags
    COMPONENT_WIDTH = 15
    LEVEL_WIDTH = 11

    def _paint(self, color: str, text: str) -> str:
        return f'{color}{text}{self.RESET}'

    def format(self, record: logging.LogRecord) -> str:
        # cronq.handler.analysis -> analysis
        component = record.name.rsplit('.', 1)[-1]
        stamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')
        level_color = self.LEVEL_COLORS.get(record.levelno, self.TEXT_COLOR)

        line = (
            self._paint(self.TIME_COLOR, f'[{stamp}]') + ' '
            + self._paint(self.TEXT_COLOR, f'[{component}]'.ljust(self.COMPONENT_WIDTH))
            + self._paint(level_color, f'[{record.levelname}]'.ljust(self.LEVEL_WIDTH))
            + self._paint(self.TEXT_COLOR, record.getMessage())
        )
        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


def set_default_level(level: int) -> None:
    """Set the default log level for new loggers."""
    global _default_level
    _default_level = level


def apply_level(level: int) -> None:
    """Set the default level and push it onto every cronq logger already created."""
    set_default_level(level)

    root_logger = logging.getLogger('cronq')
    root_logger.setLevel(level)

    for name in logging.Logger.manager.loggerDict:
        if isinstance(name, str) and name.startswith('cronq.'):
            lgr = logging.getLogger(name)
            lgr.setLevel(level)
            for handler in lgr.handlers:
                handler.setLevel(level)


def get_logger(component_name: str) -> logging.Logger:
    """Get a logger for the specified component."""
    logger_name = f'cronq.{component_name}'
    logger = logging.getLogger(logger_name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(ColoredFormatter())
        handler.setLevel(_default_level)
        logger.addHandler(handler)
        logger.setLevel(_default_level)

        # Prevent duplicate logs from parent loggers
        logger.propagate = False

    return logger
