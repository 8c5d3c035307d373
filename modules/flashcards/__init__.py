"""
Flashcard session engine for kana practice.
Selects the next character weighted by the learner's accuracy, builds
multiple-choice distractors, evaluates answers and updates accuracy counters.
"""

from .errors import (
	FlashcardEngineError,
	CatalogUnavailable,
	EmptyCatalog,
	EmptyAnswer,
	StatsPersistenceFailed,
	Unauthenticated,
	NoActiveCard,
	SubmissionInProgress,
	AnswerAlreadySubmitted,
)
from .selection import select_next, generate_choices, selection_weight
from .session import (
	FlashcardSession,
	SessionState,
	EvaluationResult,
	InteractionMode,
	SessionStatus,
	AnswerResult,
	normalize_answer,
)
from .session_manager import SessionManager, SessionNotFound

__all__ = [
	'FlashcardEngineError',
	'CatalogUnavailable',
	'EmptyCatalog',
	'EmptyAnswer',
	'StatsPersistenceFailed',
	'Unauthenticated',
	'NoActiveCard',
	'SubmissionInProgress',
	'AnswerAlreadySubmitted',
	'select_next',
	'generate_choices',
	'selection_weight',
	'FlashcardSession',
	'SessionState',
	'EvaluationResult',
	'InteractionMode',
	'SessionStatus',
	'AnswerResult',
	'normalize_answer',
	'SessionManager',
	'SessionNotFound',
]
