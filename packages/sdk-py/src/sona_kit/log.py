import logging

PACKAGE_LOGGER = 'sona_kit'
DEBUG_FORMAT = '%(asctime)s [Sona:%(name)s] %(levelname)s %(message)s'

_debug_handler = None


def set_debug(enabled: bool) -> None:
    """
    Turn SDK debug output on or off.
    Warnings are emitted regardless; debug adds per-step tracing to stderr.
    """
    global _debug_handler
    logger = logging.getLogger(PACKAGE_LOGGER)
    if enabled:
        logger.setLevel(logging.DEBUG)
        if _debug_handler is None:
            _debug_handler = logging.StreamHandler()
            _debug_handler.setFormatter(logging.Formatter(DEBUG_FORMAT))
            logger.addHandler(_debug_handler)
    else:
        logger.setLevel(logging.WARNING)
        if _debug_handler is not None:
            logger.removeHandler(_debug_handler)
            _debug_handler = None


def is_debug_enabled() -> bool:
    return logging.getLogger(PACKAGE_LOGGER).isEnabledFor(logging.DEBUG)


def key_prefix(value: str) -> str:
    return (value or '')[:16] + '...'
