import os
import sys
import logging
import pathlib
import contextvars
from logging.handlers import RotatingFileHandler
from pythonjsonlogger import jsonlogger

_request_ctx_var = contextvars.ContextVar('request_ctx', default={})


def set_request_context(request_id: str, user_id: str = None):
    _request_ctx_var.set({'request_id': request_id, 'user_id': user_id})


def get_request_context():
    return _request_ctx_var.get()


def _inject_request_context(record):
    ctx = get_request_context()
    # explicit extra fields win over the ambient request context
    if getattr(record, 'request_id', None) is None:
        record.request_id = ctx.get('request_id')
    if getattr(record, 'user_id', None) is None:
        record.user_id = ctx.get('user_id')
    return True


def get_logger(name: str = 'kana_service'):
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'json')
    # default to a relative logs directory so local dev doesn't require /app
    LOG_FILE_PATH = os.getenv('LOG_FILE_PATH', 'logs')
    LOG_MAX_SIZE = int(os.getenv('LOG_MAX_SIZE', str(10 * 1024 * 1024)))
    LOG_MAX_FILES = int(os.getenv('LOG_MAX_FILES', '7'))

    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(LOG_LEVEL.upper())
    log_path = pathlib.Path(LOG_FILE_PATH)
    if not log_path.is_absolute():
        log_path = pathlib.Path(os.getcwd()) / log_path
    log_path.mkdir(parents=True, exist_ok=True)

    ch = logging.StreamHandler(sys.stdout)
    if LOG_FORMAT == 'json':
        fmt = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s %(user_id)s')
    else:
        fmt = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    combined = RotatingFileHandler(log_path / 'combined.log', maxBytes=LOG_MAX_SIZE, backupCount=LOG_MAX_FILES)
    combined.setFormatter(fmt)
    logger.addHandler(combined)

    errors = RotatingFileHandler(log_path / 'error.log', maxBytes=LOG_MAX_SIZE, backupCount=LOG_MAX_FILES)
    errors.setLevel(logging.ERROR)
    errors.setFormatter(fmt)
    logger.addHandler(errors)

    f = logging.Filter()
    f.filter = _inject_request_context
    logger.addFilter(f)

    logging.captureWarnings(True)

    return logger


def log_request(request_id: str, method: str, path: str, status_code: int, duration_ms: float, ip: str = None):
    logger = get_logger()
    logger.info('http_request', extra={'request_id': request_id, 'method': method, 'path': path, 'status_code': status_code, 'duration_ms': duration_ms, 'ip': ip})


def log_error(error: Exception, context: dict = None):
    logger = get_logger()
    logger.exception('error', exc_info=True, extra=context or {})


def log_catalog_load(user_id: str, kana_type: str, character_count: int, attempted_count: int, duration_ms: float, source: str = None):
    logger = get_logger()
    logger.info('catalog_loaded', extra={
        'user_id': user_id,
        'kana_type': kana_type,
        'character_count': character_count,
        'attempted_count': attempted_count,
        'duration_ms': duration_ms,
        'source': source,
    })


def log_answer_submission(user_id: str, character_id: str, is_correct: bool, persisted: bool, attempts: int = None, correct_attempts: int = None, duration_ms: float = None):
    logger = get_logger()
    logger.info('answer_submitted', extra={
        'user_id': user_id,
        'character_id': character_id,
        'is_correct': is_correct,
        'persisted': persisted,
        'attempts': attempts,
        'correct_attempts': correct_attempts,
        'duration_ms': duration_ms,
    })


def log_session_event(session_id: str, event: str, user_id: str = None, **fields):
    logger = get_logger()
    extra = {'session_id': session_id, 'event': event, 'user_id': user_id}
    extra.update(fields)
    logger.info('session_event', extra=extra)
