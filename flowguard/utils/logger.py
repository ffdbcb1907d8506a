"""Central logger configuration for FlowGuard modules."""
import logging

# third-party loggers that drown out detection output at INFO
_NOISY = ('scapy.runtime', 'scapy.loading', 'werkzeug')


def configure(level=logging.INFO):
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    for name in _NOISY:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name):
    return logging.getLogger(name)
