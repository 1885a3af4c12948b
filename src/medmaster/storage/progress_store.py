"""Progress record ownership: load, read-merge-write, persist.

The store owns exactly one ``ProgressRecord``. Every change is expressed as
"compute the new full record, verify it, persist it, then swap it in", so a
failed write or a rejected mutation never leaves a half-applied record in
memory or on disk.

Mutations are not serialised here. Callers must not run two mutations of the
same store concurrently (the UI disables input while a request is pending).
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol

import structlog
from pydantic import ValidationError as PydanticValidationError

from medmaster.errors import ConsistencyError, ValidationError
from medmaster.models.progress import ProgressRecord, UserGoals, UserPreferences
from medmaster.models.user import User
from medmaster.progress.statistics import streak_transition

logger = structlog.get_logger()

USER_KEY = "medmaster_user"
PROGRESS_KEY = "medmaster_progress"


class BlobStore(Protocol):
    def load(self, key: str) -> bytes | None: ...

    def save(self, key: str, data: bytes) -> None: ...

    def delete(self, key: str) -> None: ...


def serialize_record(record: ProgressRecord) -> bytes:
    """Encode a record in its persisted camelCase JSON shape."""
    return record.model_dump_json(by_alias=True).encode("utf-8")


def deserialize_record(data: bytes) -> ProgressRecord:
    """Decode a persisted record, applying defaults for missing sections."""
    try:
        return ProgressRecord.model_validate_json(data)
    except PydanticValidationError as e:
        raise ConsistencyError(f"Stored progress record is invalid: {e}") from e


def _verify(record: ProgressRecord) -> ProgressRecord:
    # model_copy(update=...) skips validation, so re-check invariants here.
    try:
        return ProgressRecord.model_validate(record.model_dump(by_alias=True))
    except PydanticValidationError as e:
        raise ConsistencyError(f"Progress update rejected: {e}") from e


class ProgressStore:
    """Owner of one user's progress record and identity.

    Args:
        blobs: Key-value blob storage.
        record: Current record; a zeroed record when omitted.
        user: Current identity, if any.
    """

    def __init__(
        self,
        blobs: BlobStore,
        record: ProgressRecord | None = None,
        user: User | None = None,
    ):
        self._blobs = blobs
        self._record = record if record is not None else ProgressRecord()
        self._user = user

    @classmethod
    def open(cls, blobs: BlobStore) -> "ProgressStore":
        """Load identity and progress from storage."""
        raw_progress = blobs.load(PROGRESS_KEY)
        record = deserialize_record(raw_progress) if raw_progress is not None else None

        raw_user = blobs.load(USER_KEY)
        user = None
        if raw_user is not None:
            try:
                user = User.model_validate_json(raw_user)
            except PydanticValidationError as e:
                raise ConsistencyError(f"Stored user identity is invalid: {e}") from e

        logger.debug(
            "progress_store_opened",
            has_record=record is not None,
            has_user=user is not None,
        )
        return cls(blobs, record=record, user=user)

    @property
    def record(self) -> ProgressRecord:
        """A private copy of the current record."""
        return self._record.model_copy(deep=True)

    @property
    def user(self) -> User | None:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    def update(self, mutate: Callable[[ProgressRecord], ProgressRecord]) -> ProgressRecord:
        """Apply ``mutate`` to a copy of the record and persist the result.

        Args:
            mutate: Receives a private copy, returns the new full record.

        Returns:
            The persisted record.

        Raises:
            ConsistencyError: The new record breaks an invariant.
        """
        candidate = _verify(mutate(self._record.model_copy(deep=True)))
        self._blobs.save(PROGRESS_KEY, serialize_record(candidate))
        self._record = candidate
        return self.record

    def merge(self, **changes: Any) -> ProgressRecord:
        """Shallow-merge top-level fields into the record and persist."""
        return self.update(lambda record: record.model_copy(update=changes))

    def update_goals(self, **changes: Any) -> ProgressRecord:
        goals = _merge_section(self._record.goals, UserGoals, changes, "goals")
        return self.merge(goals=goals)

    def update_preferences(self, **changes: Any) -> ProgressRecord:
        preferences = _merge_section(
            self._record.preferences, UserPreferences, changes, "preferences"
        )
        return self.merge(preferences=preferences)

    def clear_suggestions(self) -> ProgressRecord:
        """Invalidate the cached suggestions."""
        logger.info("suggestions_invalidated")
        return self.merge(suggested_topics=[])

    def register(
        self,
        user: User,
        daily_questions: int = 10,
        weekly_questions: int = 50,
    ) -> ProgressRecord:
        """Store a new identity; create zeroed progress when none is stored."""
        self._blobs.save(USER_KEY, user.model_dump_json(by_alias=True).encode("utf-8"))
        self._user = user
        if self._blobs.load(PROGRESS_KEY) is None:
            fresh = ProgressRecord(
                goals=UserGoals(
                    daily_questions=daily_questions,
                    weekly_questions=weekly_questions,
                )
            )
            self.update(lambda _: fresh)
            logger.info("progress_record_created", user_id=user.id)
        return self.record

    def login(self, user: User, now: datetime | None = None) -> ProgressRecord:
        """Store the identity and roll the login streak forward."""
        now = now or datetime.now()
        self._blobs.save(USER_KEY, user.model_dump_json(by_alias=True).encode("utf-8"))
        self._user = user
        record = self.update(lambda r: streak_transition(r, now))
        logger.info("user_logged_in", user_id=user.id, streak_days=record.streak_days)
        return record

    def logout(self) -> None:
        """Forget the identity. The progress record survives."""
        self._blobs.delete(USER_KEY)
        self._user = None
        logger.info("user_logged_out")


def _merge_section(current, model_cls, changes: dict[str, Any], name: str):
    # Accept both camelCase and snake_case keys.
    by_alias = {field.alias or key: key for key, field in model_cls.model_fields.items()}
    changes = {by_alias.get(key, key): value for key, value in changes.items()}
    try:
        return model_cls.model_validate({**current.model_dump(), **changes})
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid {name}: {e}") from e
