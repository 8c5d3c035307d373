import os
import time
import signal
import asyncio
from datetime import datetime
from typing import Optional, List

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from modules.kana import get_catalog_provider, parse_kana_type, CatalogSourceError
from modules.progress import get_accuracy_store, AccuracyStoreError
from modules.flashcards import (
    SessionManager,
    SessionNotFound,
    InteractionMode,
    CatalogUnavailable,
    EmptyCatalog,
    EmptyAnswer,
    Unauthenticated,
    NoActiveCard,
    SubmissionInProgress,
    AnswerAlreadySubmitted,
)
from modules.dashboard import build_stats, summarize
from modules.utils import get_logger, set_request_context

LOG = get_logger()

USER_HEADER = 'x-user-id'


class Settings(BaseSettings):
    HOST: str = os.getenv('HOST', '0.0.0.0')
    PORT: int = int(os.getenv('PORT', '8000'))
    ENVIRONMENT: str = os.getenv('ENVIRONMENT', 'development')
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')
    CORS_ORIGIN: str = os.getenv('CORS_ORIGIN', '*')
    REDIS_REQUIRED_FOR_READY: bool = os.getenv('REDIS_REQUIRED_FOR_READY', 'false').lower() in ('1', 'true', 'yes')


settings = Settings()

app = FastAPI(title='Kana Flashcards Service', version='1.0.0', description='Adaptive hiragana/katakana flashcard practice')

origins = [o.strip() for o in settings.CORS_ORIGIN.split(',') if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware('http')
async def add_request_id_and_logging(request: Request, call_next):
    # prefer incoming X-Request-ID header for cross-service tracing
    request_id = request.headers.get('x-request-id') or os.urandom(8).hex()
    request.state.request_id = request_id
    set_request_context(request_id, _user_id(request))
    start = time.time()
    LOG.info('http_request_start', extra={'method': request.method, 'path': request.url.path, 'request_id': request_id, 'client': request.client.host if request.client else None})
    try:
        response: Response = await call_next(request)
    except Exception:
        LOG.exception('Unhandled exception in request', exc_info=True)
        body = {'success': False, 'error': {'message': 'Internal server error', 'request_id': request_id}}
        return JSONResponse(status_code=500, content=body)
    duration = int((time.time() - start) * 1000)
    LOG.info('http_request_end', extra={'method': request.method, 'path': request.url.path, 'status_code': response.status_code, 'duration_ms': duration, 'request_id': request_id})
    response.headers['X-Request-ID'] = request_id
    return response


def _user_id(request: Request) -> Optional[str]:
    # identity is validated upstream; the header value is an opaque id
    value = request.headers.get(USER_HEADER)
    if value is None or not value.strip():
        return None
    return value.strip()


def _request_id(request: Request) -> str:
    return getattr(request.state, 'request_id', None) or os.urandom(8).hex()


def _error(status_code: int, error: str, details: str, request_id: str, **extra) -> JSONResponse:
    body = {'success': False, 'error': error, 'details': details, 'request_id': request_id}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


def _unauthorized(request_id: str) -> JSONResponse:
    return _error(401, 'Unauthorized', 'missing user identity', request_id)


@app.get('/health')
async def health():
    return {'status': 'ok', 'timestamp': datetime.utcnow().isoformat() + 'Z', 'service': 'kana-flashcards'}


def _check_store():
    try:
        return 'ok' if get_accuracy_store().health_check() else 'error: accuracy store unreachable'
    except Exception as e:
        return f'error: {str(e)}'


def _check_catalog():
    try:
        return 'ok' if get_catalog_provider().health_check() else 'error: catalog source unreachable'
    except Exception as e:
        return f'error: {str(e)}'


def _check_redis():
    try:
        import redis
        r = redis.Redis(host=os.getenv('REDIS_HOST', 'redis'), port=int(os.getenv('REDIS_PORT', '6379')), password=os.getenv('REDIS_PASSWORD') or None, socket_timeout=3)
        r.ping()
        return 'ok'
    except Exception as e:
        return f'error: {str(e)}'


@app.get('/ready')
def ready():
    services = {
        'accuracy_store': _check_store(),
        'catalog': _check_catalog(),
        'redis': _check_redis(),
    }
    ready_ok = True
    if services['accuracy_store'].startswith('error') or services['catalog'].startswith('error'):
        ready_ok = False
    if settings.REDIS_REQUIRED_FOR_READY and services['redis'].startswith('error'):
        ready_ok = False
    status_code = 200 if ready_ok else 503
    return JSONResponse(status_code=status_code, content={'status': 'ready' if ready_ok else 'not ready', 'services': services})


# ---------------------------------------------------------------------------
# Stateless catalog / submit / stats endpoints
# ---------------------------------------------------------------------------


class KanaWithAccuracy(BaseModel):
    id: str
    character: str
    romaji: str
    accuracy: float


class FlashcardListResponse(BaseModel):
    success: bool
    kana: List[KanaWithAccuracy]
    request_id: str


class SubmitRequest(BaseModel):
    kana_id: str = Field(..., min_length=1)
    is_correct: bool


@app.get('/flashcards', response_model=FlashcardListResponse)
def list_flashcards(fastapi_request: Request, kana_type: Optional[str] = None):
    request_id = _request_id(fastapi_request)
    user_id = _user_id(fastapi_request)
    if not user_id:
        return _unauthorized(request_id)
    try:
        target = parse_kana_type(kana_type)
    except ValueError as e:
        return _error(422, 'Validation failed', str(e), request_id)
    try:
        characters = get_catalog_provider().fetch_catalog(target)
        records = get_accuracy_store().fetch_accuracy(user_id, [c.id for c in characters])
    except (CatalogSourceError, AccuracyStoreError) as e:
        LOG.exception('flashcards_fetch_failed', exc_info=True)
        return _error(503, 'Could not load flashcards', str(e), request_id, retryable=True)
    kana = [
        KanaWithAccuracy(id=c.id, character=c.glyph, romaji=c.romaji, accuracy=records[c.id].accuracy if c.id in records else 0.0)
        for c in characters
    ]
    return FlashcardListResponse(success=True, kana=kana, request_id=request_id)


@app.post('/flashcards/submit')
def submit_flashcard(req: SubmitRequest, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    user_id = _user_id(fastapi_request)
    if not user_id:
        return _unauthorized(request_id)
    try:
        known_ids = {c.id for c in get_catalog_provider().fetch_catalog(None)}
        if req.kana_id not in known_ids:
            return _error(404, 'Unknown kana', f'no kana with id {req.kana_id}', request_id)
        record = get_accuracy_store().upsert_accuracy(user_id, req.kana_id, req.is_correct)
    except (CatalogSourceError, AccuracyStoreError) as e:
        LOG.exception('flashcard_submit_failed', exc_info=True)
        return _error(503, 'Could not save result', str(e), request_id, retryable=True)
    return {'success': True, 'record': record.model_dump(), 'request_id': request_id}


@app.get('/stats')
def get_stats(fastapi_request: Request, filter: str = 'all', sort: str = 'accuracy', direction: str = 'asc'):
    request_id = _request_id(fastapi_request)
    user_id = _user_id(fastapi_request)
    if not user_id:
        return _unauthorized(request_id)
    try:
        characters = get_catalog_provider().fetch_catalog(None)
        records = get_accuracy_store().list_records(user_id)
    except (CatalogSourceError, AccuracyStoreError) as e:
        LOG.exception('stats_fetch_failed', exc_info=True)
        return _error(503, 'Could not load stats', str(e), request_id, retryable=True)
    try:
        summary = summarize(build_stats(characters, records), script_filter=filter, sort_column=sort, sort_direction=direction)
    except ValueError as e:
        return _error(422, 'Validation failed', str(e), request_id)
    return {'success': True, 'stats': summary.model_dump(mode='json'), 'request_id': request_id}


# ---------------------------------------------------------------------------
# Practice sessions
# ---------------------------------------------------------------------------


class SessionCreateRequest(BaseModel):
    kana_type: Optional[str] = 'all'
    mode: str = InteractionMode.TYPING.value


class AnswerRequest(BaseModel):
    answer: Optional[str] = ''


class ModeRequest(BaseModel):
    mode: str


def _session_error(exc: Exception, request_id: str, session_id: str = None) -> JSONResponse:
    if isinstance(exc, Unauthenticated):
        return _unauthorized(request_id)
    if isinstance(exc, SessionNotFound):
        return _error(404, 'Session not found', str(exc), request_id)
    if isinstance(exc, EmptyCatalog):
        return _error(404, 'No content available', str(exc), request_id, session_id=session_id)
    if isinstance(exc, CatalogUnavailable):
        return _error(503, 'Could not load flashcards', str(exc), request_id, retryable=True, session_id=session_id)
    if isinstance(exc, (SubmissionInProgress, AnswerAlreadySubmitted)):
        return _error(409, 'Conflict', str(exc), request_id, session_id=session_id)
    if isinstance(exc, (EmptyAnswer, NoActiveCard, ValueError)):
        return _error(422, 'Validation failed', str(exc), request_id, session_id=session_id)
    LOG.exception('session_unknown_error', exc_info=exc)
    return _error(500, 'Unexpected error', str(exc), request_id, session_id=session_id)


_HANDLED = (Unauthenticated, SessionNotFound, EmptyCatalog, CatalogUnavailable, SubmissionInProgress, AnswerAlreadySubmitted, EmptyAnswer, NoActiveCard, ValueError)


def _owned_session(session_id: str, fastapi_request: Request):
    user_id = _user_id(fastapi_request)
    if not user_id:
        raise Unauthenticated('missing user identity')
    return SessionManager.get_instance().get_session(session_id, user_id)


@app.post('/sessions', status_code=201)
def create_session(req: SessionCreateRequest, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    user_id = _user_id(fastapi_request)
    if not user_id:
        return _unauthorized(request_id)
    session_id = None
    try:
        session_id, session = SessionManager.get_instance().create_session(
            user_id,
            get_accuracy_store(),
            get_catalog_provider(),
            kana_type=req.kana_type,
            interaction_mode=req.mode,
        )
        session.load_catalog()
    except _HANDLED as e:
        return _session_error(e, request_id, session_id)
    return {'success': True, 'session_id': session_id, 'session': session.snapshot(), 'request_id': request_id}


@app.post('/sessions/{session_id}/load')
def reload_session(session_id: str, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    try:
        session = _owned_session(session_id, fastapi_request)
        session.load_catalog()
    except _HANDLED as e:
        return _session_error(e, request_id, session_id)
    return {'success': True, 'session_id': session_id, 'session': session.snapshot(), 'request_id': request_id}


@app.get('/sessions/{session_id}')
def get_session(session_id: str, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    try:
        session = _owned_session(session_id, fastapi_request)
    except (Unauthenticated, SessionNotFound) as e:
        return _session_error(e, request_id)
    return {'success': True, 'session_id': session_id, 'session': session.snapshot(), 'request_id': request_id}


@app.post('/sessions/{session_id}/answer')
def answer(session_id: str, req: AnswerRequest, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    try:
        session = _owned_session(session_id, fastapi_request)
        result = session.submit_answer(req.answer)
    except _HANDLED as e:
        return _session_error(e, request_id, session_id)
    if not result.persisted:
        LOG.warning('answer_not_persisted', extra={'session_id': session_id, 'character_id': result.character.id})
    return {'success': True, 'evaluation': result.to_dict(), 'session': session.snapshot(), 'request_id': request_id}


@app.post('/sessions/{session_id}/retry-persistence')
def retry_persistence(session_id: str, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    try:
        session = _owned_session(session_id, fastapi_request)
        result = session.retry_persistence()
    except _HANDLED as e:
        return _session_error(e, request_id, session_id)
    return {'success': result.persisted, 'evaluation': result.to_dict(), 'request_id': request_id}


@app.post('/sessions/{session_id}/next')
def next_card(session_id: str, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    try:
        session = _owned_session(session_id, fastapi_request)
        session.next_card()
    except _HANDLED as e:
        return _session_error(e, request_id, session_id)
    return {'success': True, 'session': session.snapshot(), 'request_id': request_id}


@app.post('/sessions/{session_id}/mode')
def set_mode(session_id: str, req: ModeRequest, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    try:
        session = _owned_session(session_id, fastapi_request)
        session.set_interaction_mode(req.mode)
    except _HANDLED as e:
        return _session_error(e, request_id, session_id)
    return {'success': True, 'session': session.snapshot(), 'request_id': request_id}


@app.delete('/sessions/{session_id}')
def discard_session(session_id: str, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    user_id = _user_id(fastapi_request)
    if not user_id:
        return _unauthorized(request_id)
    if not SessionManager.get_instance().discard(session_id, user_id):
        return _error(404, 'Session not found', f'session {session_id} not found', request_id)
    return {'success': True, 'request_id': request_id}


@app.on_event('startup')
async def on_startup():
    LOG.info('Kana service starting', extra={'env': settings.ENVIRONMENT})
    try:
        store = get_accuracy_store()
        LOG.info('Accuracy store ready', extra={'backend': store.name})
    except Exception as e:
        LOG.warning('Accuracy store init failed', extra={'error': str(e)})
    try:
        provider = get_catalog_provider()
        LOG.info('Catalog provider ready', extra={'backend': provider.name})
    except Exception as e:
        LOG.warning('Catalog provider init failed', extra={'error': str(e)})


@app.on_event('shutdown')
async def on_shutdown():
    LOG.info('Kana service shutting down')
    from modules.utils.db import ConnectionPool
    if ConnectionPool._instance is not None:
        ConnectionPool._instance.close()


def _install_signal_handlers(loop: Optional[asyncio.AbstractEventLoop] = None):
    if loop is None:
        loop = asyncio.get_event_loop()

    def _handler(signum, frame):
        LOG.info('Received shutdown signal', extra={'signal': signum})
        loop.call_soon_threadsafe(loop.stop)

    signal.signal(signal.SIGTERM, _handler)
    signal.signal(signal.SIGINT, _handler)


if __name__ == '__main__':
    import uvicorn

    _install_signal_handlers()
    workers = int(os.getenv('WORKERS', '1'))
    # sessions live in process memory; multiple workers need sticky routing
    if settings.ENVIRONMENT == 'development':
        workers = 1
    reload_enabled = (settings.ENVIRONMENT == 'development') and (workers == 1)

    uvicorn.run(
        'main:app',
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=reload_enabled,
        workers=workers,
    )
