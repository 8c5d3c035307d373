from typing import Optional


class FlashcardEngineError(Exception):
    pass


class CatalogUnavailable(FlashcardEngineError):
    """Catalog or accuracy lookup failed; the load can be retried."""


class EmptyCatalog(FlashcardEngineError):
    """No characters available to select from."""


class EmptyAnswer(FlashcardEngineError):
    """Submitted answer was empty or whitespace only."""


class StatsPersistenceFailed(FlashcardEngineError):
    """Answer was evaluated but the counter update did not persist."""

    def __init__(self, message: str, character_id: Optional[str] = None):
        super().__init__(message)
        self.character_id = character_id


class Unauthenticated(FlashcardEngineError):
    pass


class NoActiveCard(FlashcardEngineError):
    pass


class SubmissionInProgress(FlashcardEngineError):
    pass


class AnswerAlreadySubmitted(FlashcardEngineError):
    pass
