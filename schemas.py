"""
Record Schemas for the Coaching Portal (local key-value storage via Pydantic models)
Each Pydantic model is one entry of a stored collection; JSON field names are camelCase.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Literal

Role = Literal["STUDENT", "TEACHER"]
AttendanceStatus = Literal["PRESENT", "ABSENT", "LATE"]
PaymentStatus = Literal["SUCCESS", "PENDING", "FAILED"]

NOT_MARKED = "NOT_MARKED"


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# Core Users
class User(Record):
    id: str
    name: str = Field(..., description="Full name")
    mobile: str = Field(..., description="Login identifier for students")
    role: Role = "STUDENT"
    batch: Optional[str] = None
    class_: Optional[str] = Field(None, alias="class")
    section: Optional[str] = None

    @property
    def is_teacher(self) -> bool:
        return self.role == "TEACHER"


class AttendanceRecord(Record):
    id: str
    student_id: str
    date: str = Field(..., description="ISO day, e.g. 2023-10-01")
    status: AttendanceStatus = "PRESENT"


class TestRecord(Record):
    __test__ = False  # keep pytest from collecting this class

    id: str
    student_id: str
    subject: str
    date: str
    marks_obtained: float
    total_marks: float
    grade: str


class PaymentRecord(Record):
    id: str
    student_id: str
    amount: float
    date: str
    status: PaymentStatus = "PENDING"
    description: str
    transaction_id: Optional[str] = None
    payment_method: Optional[str] = None
    proof_image: Optional[str] = Field(None, description="Screenshot as a data URI")


class ScheduleItem(Record):
    id: str
    time: str = Field(..., description="Free text, e.g. 04:00 PM")
    subject: str
    teacher: str


class Message(Record):
    id: str
    sender_id: str
    receiver_id: str
    content: str
    timestamp: str = Field(..., description="Display time, not sortable")
    is_read: bool = False


class Announcement(Record):
    id: str
    title: str
    message: str
    date: str


class DayEvents(Record):
    announcements: List[Announcement]
    has_classes: bool
