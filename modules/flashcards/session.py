from __future__ import annotations

import random
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple

from modules.kana import CatalogEntry, CatalogProvider, CatalogSourceError, KanaType, parse_kana_type
from modules.progress import AccuracyRecord, AccuracyStore, AccuracyStoreError
from modules.utils import get_logger, log_catalog_load, log_answer_submission

from .errors import (
    CatalogUnavailable,
    EmptyAnswer,
    StatsPersistenceFailed,
    Unauthenticated,
    NoActiveCard,
    SubmissionInProgress,
    AnswerAlreadySubmitted,
)
from .selection import select_next, generate_choices, CHOICE_COUNT

LOG = get_logger()

# failures of the external lookups that make a catalog load retryable
_LOAD_ERRORS = (CatalogSourceError, AccuracyStoreError, OSError)


class InteractionMode(str, Enum):
    TYPING = 'typing'
    MULTIPLE_CHOICE = 'multiple-choice'


class SessionStatus(str, Enum):
    UNINITIALIZED = 'uninitialized'
    LOADING = 'loading'
    READY = 'ready'


class AnswerResult(str, Enum):
    CORRECT = 'correct'
    INCORRECT = 'incorrect'


def normalize_answer(raw_input: Any) -> str:
    if raw_input is None:
        return ''
    return str(raw_input).strip().lower()


@dataclass
class SessionState:
    catalog: Tuple[CatalogEntry, ...] = ()
    current_character: Optional[CatalogEntry] = None
    interaction_mode: InteractionMode = InteractionMode.TYPING
    choices: List[str] = field(default_factory=list)
    last_result: Optional[AnswerResult] = None
    status: SessionStatus = SessionStatus.UNINITIALIZED


@dataclass
class EvaluationResult:
    is_correct: bool
    character: CatalogEntry
    submitted: str
    record: Optional[AccuracyRecord] = None
    persistence_error: Optional[StatsPersistenceFailed] = None

    @property
    def persisted(self) -> bool:
        return self.persistence_error is None and self.record is not None

    @property
    def result(self) -> AnswerResult:
        return AnswerResult.CORRECT if self.is_correct else AnswerResult.INCORRECT

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_correct': self.is_correct,
            'result': self.result.value,
            'correct_answer': self.character.romaji,
            'character': {'id': self.character.id, 'glyph': self.character.glyph},
            'submitted': self.submitted,
            'record': self.record.model_dump() if self.record else None,
            'persistence': {
                'saved': self.persisted,
                'error': str(self.persistence_error) if self.persistence_error else None,
            },
        }


class FlashcardSession:
    """One learner's practice session on one practice screen.

    Owns a ``SessionState`` and mutates it only through ``load_catalog``,
    ``submit_answer``, ``retry_persistence``, ``next_card`` and
    ``set_interaction_mode``. The catalog and accuracy store are external
    collaborators; the session never authenticates, it only refuses to work
    without a user id.
    """

    def __init__(self, user_id: Optional[str], accuracy_store: AccuracyStore, catalog_provider: CatalogProvider, kana_type: Any = None, interaction_mode: Any = InteractionMode.TYPING, rng: Optional[random.Random] = None, choice_count: int = CHOICE_COUNT):
        self.user_id = user_id
        self.kana_type: Optional[KanaType] = parse_kana_type(kana_type)
        self.state = SessionState(interaction_mode=InteractionMode(interaction_mode))
        self.choice_count = choice_count
        self._store = accuracy_store
        self._catalog_provider = catalog_provider
        self._rng = rng or random.Random()
        self._submit_lock = threading.Lock()
        self._last_evaluation: Optional[EvaluationResult] = None

    def _require_user(self):
        if not self.user_id or not str(self.user_id).strip():
            raise Unauthenticated('a user id is required')

    # -- loading ---------------------------------------------------------

    def load_catalog(self, kana_type: Any = None) -> Tuple[CatalogEntry, ...]:
        """Fetch the catalog and the learner's accuracy, then show a first card.

        ``kana_type`` overrides the session's practice mode when given. On
        failure the previous state is kept and ``CatalogUnavailable`` raised.
        """
        self._require_user()
        target = self.kana_type if kana_type is None else parse_kana_type(kana_type)
        previous_status = self.state.status
        self.state.status = SessionStatus.LOADING
        start = time.time()
        try:
            characters = self._catalog_provider.fetch_catalog(target)
            records = self._store.fetch_accuracy(self.user_id, [c.id for c in characters])
            catalog = tuple(
                CatalogEntry(id=c.id, glyph=c.glyph, romaji=c.romaji, accuracy=records[c.id].accuracy if c.id in records else 0.0)
                for c in characters
            )
        except _LOAD_ERRORS as e:
            self.state.status = previous_status
            LOG.warning('catalog_load_failed', extra={'user_id': self.user_id, 'kana_type': target.value if target else 'all', 'error': str(e)})
            raise CatalogUnavailable(str(e)) from e
        except Exception:
            self.state.status = previous_status
            LOG.exception('catalog_load_error', exc_info=True, extra={'user_id': self.user_id, 'kana_type': target.value if target else 'all'})
            raise

        self.kana_type = target
        self.state.catalog = catalog
        self.state.current_character = None
        self.state.choices = []
        self.state.last_result = None
        self.state.status = SessionStatus.READY
        self._last_evaluation = None
        if catalog:
            self._show(select_next(catalog, rng=self._rng))

        duration_ms = int((time.time() - start) * 1000)
        log_catalog_load(self.user_id, target.value if target else 'all', len(catalog), len(records), duration_ms, source=getattr(self._catalog_provider, 'name', None))
        return catalog

    def _show(self, entry: CatalogEntry):
        self.state.current_character = entry
        self.state.last_result = None
        self._last_evaluation = None
        if self.state.interaction_mode == InteractionMode.MULTIPLE_CHOICE:
            self.state.choices = generate_choices(self.state.catalog, entry, count=self.choice_count, rng=self._rng)
        else:
            self.state.choices = []

    # -- answering -------------------------------------------------------

    def submit_answer(self, raw_input: Any) -> EvaluationResult:
        self._require_user()
        if not self._submit_lock.acquire(blocking=False):
            raise SubmissionInProgress('an answer for this card is already being submitted')
        try:
            current = self.state.current_character
            if current is None:
                raise NoActiveCard('no card is being shown')
            if self.state.last_result is not None:
                raise AnswerAlreadySubmitted('this card has already been answered; advance to the next card')
            normalized = normalize_answer(raw_input)
            if not normalized:
                raise EmptyAnswer('Please enter an answer')

            start = time.time()
            result = EvaluationResult(is_correct=normalized == current.romaji.lower(), character=current, submitted=normalized)
            # learner-visible outcome does not wait on persistence succeeding
            self.state.last_result = result.result
            self._last_evaluation = result
            self._persist(result)
            duration_ms = int((time.time() - start) * 1000)
            log_answer_submission(
                self.user_id,
                current.id,
                result.is_correct,
                result.persisted,
                attempts=result.record.attempts if result.record else None,
                correct_attempts=result.record.correct_attempts if result.record else None,
                duration_ms=duration_ms,
            )
            return result
        finally:
            self._submit_lock.release()

    def _persist(self, result: EvaluationResult):
        try:
            record = self._store.upsert_accuracy(self.user_id, result.character.id, result.is_correct)
        except Exception as e:
            LOG.exception('stats_persistence_failed', exc_info=True, extra={'user_id': self.user_id, 'character_id': result.character.id})
            result.record = None
            result.persistence_error = StatsPersistenceFailed(f'could not save result: {e}', character_id=result.character.id)
            return
        result.record = record
        result.persistence_error = None

    def retry_persistence(self, result: Optional[EvaluationResult] = None) -> EvaluationResult:
        """Re-issue the counter update of a result whose persistence failed.

        A result that already persisted is returned untouched so a retry
        never counts an answer twice.
        """
        self._require_user()
        result = result or self._last_evaluation
        if result is None:
            raise NoActiveCard('no evaluated answer to persist')
        if not self._submit_lock.acquire(blocking=False):
            raise SubmissionInProgress('an answer is already being submitted')
        try:
            # checked under the lock; another retry may have just saved it
            if result.persisted:
                return result
            self._persist(result)
        finally:
            self._submit_lock.release()
        LOG.info('stats_persistence_retried', extra={'user_id': self.user_id, 'character_id': result.character.id, 'persisted': result.persisted})
        return result

    @property
    def last_evaluation(self) -> Optional[EvaluationResult]:
        return self._last_evaluation

    # -- navigation ------------------------------------------------------

    def next_card(self) -> CatalogEntry:
        if self.state.status != SessionStatus.READY:
            raise NoActiveCard('catalog has not been loaded')
        if not self._submit_lock.acquire(blocking=False):
            raise SubmissionInProgress('wait for the current submission to finish')
        try:
            current = self.state.current_character
            entry = select_next(self.state.catalog, exclude_id=current.id if current else None, rng=self._rng)
            self._show(entry)
            return entry
        finally:
            self._submit_lock.release()

    def set_interaction_mode(self, mode: Any) -> InteractionMode:
        new_mode = InteractionMode(mode)
        if not self._submit_lock.acquire(blocking=False):
            raise SubmissionInProgress('wait for the current submission to finish')
        try:
            previous = self.state.interaction_mode
            self.state.interaction_mode = new_mode
            if new_mode == InteractionMode.MULTIPLE_CHOICE:
                current = self.state.current_character
                if current is not None and (previous == InteractionMode.TYPING or not self.state.choices):
                    self.state.choices = generate_choices(self.state.catalog, current, count=self.choice_count, rng=self._rng)
            else:
                self.state.choices = []
            return new_mode
        finally:
            self._submit_lock.release()

    def snapshot(self) -> Dict[str, Any]:
        current = self.state.current_character
        return {
            'status': self.state.status.value,
            'kana_type': self.kana_type.value if self.kana_type else 'all',
            'interaction_mode': self.state.interaction_mode.value,
            'current_character': {'id': current.id, 'glyph': current.glyph} if current else None,
            'choices': list(self.state.choices),
            'last_result': self.state.last_result.value if self.state.last_result else None,
            'correct_answer': current.romaji if current and self.state.last_result else None,
            'catalog_size': len(self.state.catalog),
        }
