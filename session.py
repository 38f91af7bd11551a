import json
import logging
from typing import Optional

from pydantic import ValidationError

import config
import seed_data
from database import USER_KEY
from exceptions import InvalidCredentials, ValidationFailed
from schemas import User

logger = logging.getLogger(__name__)


class SessionHolder:
    """Remembers the one logged-in user across restarts."""

    def __init__(self, storage):
        self.storage = storage
        self._current = self._restore()

    @property
    def current(self) -> Optional[User]:
        return self._current

    def login(self, user: User) -> User:
        self.storage.set_item(USER_KEY, json.dumps(user.to_json(), ensure_ascii=False))
        self._current = user
        logger.info("User %s (%s) logged in", user.id, user.role)
        return user

    def logout(self):
        if self._current is not None:
            logger.info("User %s logged out", self._current.id)
        self.storage.remove_item(USER_KEY)
        self._current = None

    def _restore(self) -> Optional[User]:
        raw = self.storage.get_item(USER_KEY)
        if raw is None:
            return None
        try:
            return User.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning("Stored session is unreadable, starting logged out: %s", e)
            return None


def teacher_user() -> User:
    return User.model_validate(seed_data.MOCK_TEACHER)


def authenticate(db, role: str, identifier: str, password: str) -> User:
    """Check the stubbed credentials; raises InvalidCredentials on mismatch."""
    if role == "TEACHER":
        if identifier == config.TEACHER_USERNAME and password == config.TEACHER_ACCESS_KEY:
            return teacher_user()
        raise InvalidCredentials("Invalid teacher username or access key.")
    if role == "STUDENT":
        student = next((s for s in db.get_students() if s.mobile == identifier), None)
        if student and password == config.STUDENT_ACCESS_KEY:
            return student
        raise InvalidCredentials("Invalid student mobile or access key.")
    raise ValidationFailed(f"Unknown role: {role}")
