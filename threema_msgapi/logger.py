import logging, json, sys, time, os

LOG_FORMAT = json.dumps({
    "ts": "%(asctime)s",
    "level": "%(levelname)s",
    "name": "%(name)s",
    "msg": "%(message)s",
})


def _formatter() -> logging.Formatter:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%SZ")
    formatter.converter = time.gmtime
    return formatter


def _resolve_level(level):
    if level is not None:
        return level
    name = os.getenv("MSGAPI_LOG_LEVEL", "INFO").upper()
    return getattr(logging, name, logging.INFO)


def get_logger(name="msgapi", level=None, to_file=None):
    """
    JSON line logger for the SDK (``MsgApi.Transport.HTTP``, ``MsgApi.E2E``, ``MsgApi.Storage``).

    Level defaults to ``MSGAPI_LOG_LEVEL`` (INFO). Handlers are attached once per name,
    so repeated calls return the same configured logger.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))

    if logger.handlers:
        return logger

    formatter = _formatter()
    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    to_file = to_file or os.getenv("MSGAPI_LOG_FILE")
    if to_file:
        os.makedirs(os.path.dirname(to_file) or ".", exist_ok=True)
        file_handler = logging.FileHandler(to_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
