"""
Persistence gateway: named collections stored as JSON strings in a key-value medium.

A collection that was never saved reads back as its built-in sample data.
Every save rewrites the whole collection.
"""
import os
import json
import time
import logging
import tempfile
import threading
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import ValidationError

import seed_data
from exceptions import StorageUnavailable
from schemas import User, AttendanceRecord, TestRecord, PaymentRecord, ScheduleItem, Message, Announcement

logger = logging.getLogger(__name__)

KEYS = {
    "students": "rcc_students",
    "attendance": "rcc_attendance",
    "tests": "rcc_tests",
    "payments": "rcc_payments",
    "schedule": "rcc_schedule",
    "messages": "rcc_messages",
    "announcements": "rcc_announcements",
}
USER_KEY = "rcc_user"

MODELS = {
    "students": User,
    "attendance": AttendanceRecord,
    "tests": TestRecord,
    "payments": PaymentRecord,
    "schedule": ScheduleItem,
    "messages": Message,
    "announcements": Announcement,
}

DEFAULTS = {
    "students": seed_data.MOCK_STUDENTS,
    "attendance": seed_data.MOCK_ATTENDANCE,
    "tests": seed_data.MOCK_TESTS,
    "payments": seed_data.MOCK_PAYMENTS,
    "schedule": seed_data.MOCK_SCHEDULE,
    "messages": [],
    "announcements": seed_data.DEFAULT_ANNOUNCEMENTS,
}

REMINDER_TEMPLATE = (
    "⚠️ AUTOMATED REMINDER: Your tuition fee for {month} is currently pending. "
    "Please complete the online payment and upload the screenshot in the Payments "
    "section immediately to avoid late fees."
)

# ----------------------- Ids & timestamps -----------------------

_id_lock = threading.Lock()
_last_stamp = 0


def new_id(prefix: str) -> str:
    """Timestamp-derived id; strictly increasing so two ids never collide."""
    global _last_stamp
    with _id_lock:
        stamp = max(int(time.time() * 1000), _last_stamp + 1)
        _last_stamp = stamp
    return f"{prefix}-{stamp}"


def display_time(moment: Optional[datetime] = None) -> str:
    return (moment or datetime.now()).strftime("%I:%M %p")


# ----------------------- Storage media -----------------------

class MemoryStorage:
    def __init__(self, items: Optional[Dict[str, str]] = None):
        self._items = dict(items or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str):
        self._items[key] = value

    def remove_item(self, key: str):
        self._items.pop(key, None)


class FileStorage:
    """Key-value medium kept as one JSON object on disk.

    Writes go to a temp file that replaces the store in one step, and each
    read-modify-write holds the lock. A store that cannot be parsed is never
    written over.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            try:
                return self._load_all().get(key)
            except StorageUnavailable as e:
                logger.warning("%s, reading it as empty", e.detail)
                return None

    def set_item(self, key: str, value: str):
        with self._lock:
            data = self._load_all()
            data[key] = value
            self._write_all(data)

    def remove_item(self, key: str):
        with self._lock:
            data = self._load_all()
            if data.pop(key, None) is not None:
                self._write_all(data)

    def _load_all(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageUnavailable(f"Could not read storage file {self.path}: {e}")
        if not isinstance(data, dict):
            raise StorageUnavailable(f"Storage file {self.path} does not hold an object")
        return data

    def _write_all(self, data: Dict[str, str]):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".rcc-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


# ----------------------- Gateway -----------------------

class StorageService:
    def __init__(self, storage):
        self.storage = storage

    def get(self, collection: str) -> list:
        key = KEYS[collection]
        model = MODELS[collection]
        raw = self.storage.get_item(key)
        if raw is not None:
            try:
                return [model.model_validate(item) for item in json.loads(raw)]
            except (ValueError, TypeError, ValidationError) as e:
                logger.warning("Stored value under %s is unreadable, using defaults: %s", key, e)
        return [model.model_validate(item) for item in DEFAULTS[collection]]

    def save(self, collection: str, records: list):
        key = KEYS[collection]
        self.storage.set_item(key, json.dumps([r.to_json() for r in records], ensure_ascii=False))

    def get_students(self) -> List[User]:
        return self.get("students")

    def save_students(self, students: List[User]):
        self.save("students", students)

    def get_attendance(self) -> List[AttendanceRecord]:
        return self.get("attendance")

    def save_attendance(self, records: List[AttendanceRecord]):
        self.save("attendance", records)

    def get_tests(self) -> List[TestRecord]:
        return self.get("tests")

    def save_tests(self, tests: List[TestRecord]):
        self.save("tests", tests)

    def get_payments(self) -> List[PaymentRecord]:
        return self.get("payments")

    def save_payments(self, payments: List[PaymentRecord]):
        self.save("payments", payments)

    def get_schedule(self) -> List[ScheduleItem]:
        return self.get("schedule")

    def save_schedule(self, schedule: List[ScheduleItem]):
        self.save("schedule", schedule)

    def get_messages(self) -> List[Message]:
        return self.get("messages")

    def save_messages(self, messages: List[Message]):
        self.save("messages", messages)

    def get_announcements(self) -> List[Announcement]:
        return self.get("announcements")

    def save_announcements(self, announcements: List[Announcement]):
        self.save("announcements", announcements)

    def send_automated_reminder(self, student_id: str, month: str) -> Message:
        messages = self.get_messages()
        reminder = Message(
            id=new_id("rem"),
            sender_id=seed_data.TEACHER_ID,
            receiver_id=student_id,
            content=REMINDER_TEMPLATE.format(month=month),
            timestamp=display_time(),
            is_read=False,
        )
        self.save_messages([*messages, reminder])
        logger.info("Fee reminder for %s sent to %s", month, student_id)
        return reminder
