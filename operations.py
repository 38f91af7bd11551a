"""
Domain operations for the coaching portal.

Every operation takes the gateway (``db``) and, where capabilities matter, the
acting ``User``. Mutations rewrite the whole collection through the gateway.
"""
import io
import csv
import math
import logging
import calendar
from datetime import date as date_cls
from typing import Dict, Iterable, List, Optional

import config
from database import new_id, display_time
from exceptions import PermissionDenied, RecordNotFound, ValidationFailed, ConfirmationRequired
from schemas import (
    NOT_MARKED,
    User,
    AttendanceRecord,
    TestRecord,
    PaymentRecord,
    ScheduleItem,
    Message,
    Announcement,
    DayEvents,
)
from seed_data import TEACHER_ID

logger = logging.getLogger(__name__)


# ----------------------- Utility Functions -----------------------

def require_teacher(actor: User, action: str):
    if not actor.is_teacher:
        raise PermissionDenied(f"Only the teacher can {action}")


def require_self_or_teacher(actor: User, student_id: str):
    if not actor.is_teacher and actor.id != student_id:
        raise PermissionDenied("Students can only view their own records")


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def today() -> str:
    return date_cls.today().isoformat()


def parse_day(value: str) -> date_cls:
    try:
        return date_cls.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"Invalid date: {value}. Use YYYY-MM-DD")


def current_month_key() -> str:
    return date_cls.today().strftime("%Y-%m")


def _find(records: Iterable, record_id: str, label: str):
    for r in records:
        if r.id == record_id:
            return r
    raise RecordNotFound(f"{label} not found")


# ----------------------- Roster -----------------------

STUDENT_FIELDS = {"name", "mobile", "batch", "class_", "section"}


def list_students(db) -> List[User]:
    return db.get_students()


def get_student(db, student_id: str) -> User:
    return _find(db.get_students(), student_id, "Student")


def add_student(db, actor: User, name: str, mobile: str, batch: Optional[str] = None,
                class_: Optional[str] = None, section: Optional[str] = None) -> User:
    require_teacher(actor, "add students")
    if not name or not name.strip() or not mobile or not mobile.strip():
        raise ValidationFailed("Name and mobile are required")
    student = User(
        id=new_id("s"),
        name=name.strip(),
        mobile=mobile.strip(),
        role="STUDENT",
        batch=batch,
        class_=class_,
        section=section,
    )
    db.save_students([*db.get_students(), student])
    logger.info("Student %s added", student.id)
    return student


def update_student(db, actor: User, student_id: str, changes: Dict) -> User:
    require_teacher(actor, "edit students")
    changes = dict(changes)
    if "class" in changes:
        changes["class_"] = changes.pop("class")
    data = {k: v for k, v in changes.items() if k in STUDENT_FIELDS and v is not None}
    for required in ("name", "mobile"):
        if required in data and not str(data[required]).strip():
            raise ValidationFailed("Name and mobile are required")
    students = db.get_students()
    current = _find(students, student_id, "Student")
    updated = current.model_copy(update=data)
    db.save_students([updated if s.id == student_id else s for s in students])
    logger.info("Student %s updated", student_id)
    return updated


def delete_student(db, actor: User, student_id: str, confirmed: bool = False):
    require_teacher(actor, "remove students")
    if not confirmed:
        raise ConfirmationRequired("Are you sure you want to remove this student?")
    students = db.get_students()
    _find(students, student_id, "Student")
    db.save_students([s for s in students if s.id != student_id])
    logger.info("Student %s removed", student_id)


# ----------------------- Attendance -----------------------

def toggle_status(db, actor: User, student_id: str, date: str) -> str:
    """Flip PRESENT/ABSENT for the day, or mark PRESENT if nothing is recorded yet."""
    require_teacher(actor, "mark attendance")
    parse_day(date)
    records = db.get_attendance()
    index = next((i for i, a in enumerate(records) if a.student_id == student_id and a.date == date), None)
    if index is not None:
        current = records[index]
        status = "ABSENT" if current.status == "PRESENT" else "PRESENT"
        records[index] = current.model_copy(update={"status": status})
    else:
        status = "PRESENT"
        records.append(AttendanceRecord(id=new_id("att"), student_id=student_id, date=date, status=status))
    db.save_attendance(records)
    logger.info("Attendance for %s on %s set to %s", student_id, date, status)
    return status


def status_for(db, student_id: str, date: str) -> str:
    for a in db.get_attendance():
        if a.student_id == student_id and a.date == date:
            return a.status
    return NOT_MARKED


def attendance_for(db, actor: User, student_id: str) -> List[AttendanceRecord]:
    require_self_or_teacher(actor, student_id)
    return [a for a in db.get_attendance() if a.student_id == student_id]


def attendance_sheet(db, date: str) -> Dict[str, str]:
    """Status of every rostered student for one day."""
    return {s.id: status_for(db, s.id, date) for s in db.get_students()}


def attendance_rate(records: List[AttendanceRecord]) -> int:
    if not records:
        return 0
    present = sum(1 for a in records if a.status == "PRESENT")
    return round_half_up(present / len(records) * 100)


# ----------------------- Test Records -----------------------

def add_result(db, actor: User, student_id: str, subject: str, date: str,
               marks_obtained: float, total_marks: float, grade: str) -> TestRecord:
    require_teacher(actor, "add test results")
    parse_day(date)
    record = TestRecord(
        id=new_id("test"),
        student_id=student_id,
        subject=subject,
        date=date,
        marks_obtained=marks_obtained,
        total_marks=total_marks,
        grade=grade,
    )
    db.save_tests([record, *db.get_tests()])
    logger.info("Test result %s added for %s", record.id, student_id)
    return record


def percentage_for(record: TestRecord) -> int:
    if record.total_marks <= 0:
        return 0
    return round_half_up(record.marks_obtained / record.total_marks * 100)


def results_for(db, actor: User, student_id: str) -> List[TestRecord]:
    require_self_or_teacher(actor, student_id)
    return [t for t in db.get_tests() if t.student_id == student_id]


def average_score(records: List[TestRecord]) -> int:
    scored = [t for t in records if t.total_marks > 0]
    if not scored:
        return 0
    return round_half_up(sum(t.marks_obtained / t.total_marks for t in scored) / len(scored) * 100)


# ----------------------- Payments -----------------------

def record_payment(db, actor: User, student_id: str, amount: float, description: Optional[str],
                   method: Optional[str], proof_image: Optional[str],
                   transaction_id: Optional[str] = None, date: Optional[str] = None) -> PaymentRecord:
    """New payments wait in PENDING until the teacher checks the screenshot."""
    require_self_or_teacher(actor, student_id)
    if not proof_image:
        raise ValidationFailed("Upload the payment screenshot for verification")
    if amount <= 0:
        raise ValidationFailed("Amount must be positive")
    pay_date = date or today()
    paid_on = parse_day(pay_date)
    payment = PaymentRecord(
        id=new_id("p"),
        student_id=student_id,
        amount=amount,
        date=pay_date,
        status="PENDING",
        description=description or f"Monthly Fees - {paid_on:%B}",
        transaction_id=transaction_id,
        payment_method=method,
        proof_image=proof_image,
    )
    db.save_payments([payment, *db.get_payments()])
    logger.info("Payment %s of %s submitted for %s", payment.id, amount, student_id)
    return payment


def approve(db, actor: User, payment_id: str) -> PaymentRecord:
    require_teacher(actor, "approve payments")
    payments = db.get_payments()
    payment = _find(payments, payment_id, "Payment")
    if payment.status == "SUCCESS":
        return payment
    approved = payment.model_copy(update={"status": "SUCCESS"})
    db.save_payments([approved if p.id == payment_id else p for p in payments])
    logger.info("Payment %s approved", payment_id)
    return approved


def payments_for(db, actor: User, student_id: Optional[str] = None) -> List[PaymentRecord]:
    payments = db.get_payments()
    if not actor.is_teacher:
        return [p for p in payments if p.student_id == actor.id]
    if student_id:
        return [p for p in payments if p.student_id == student_id]
    return payments


def paid_total(payments: Iterable[PaymentRecord]) -> float:
    return sum(p.amount for p in payments if p.status == "SUCCESS")


def progress_percent(paid: float, target: float) -> float:
    if target <= 0:
        return 100.0
    return min(100.0, paid / target * 100)


def fee_progress(db, actor: User, student_id: Optional[str] = None) -> Dict:
    visible = payments_for(db, actor, student_id)
    target = config.COLLECTION_TARGET if actor.is_teacher else config.ANNUAL_FEE
    paid = paid_total(visible)
    return {"paid": paid, "target": target, "percent": progress_percent(paid, target)}


def _has_paid(payments, student_id: str, month_key: str) -> bool:
    return any(p.student_id == student_id and p.status == "SUCCESS" and p.date.startswith(month_key)
               for p in payments)


def _has_pending(payments, student_id: str) -> bool:
    return any(p.student_id == student_id and p.status == "PENDING" for p in payments)


def is_delinquent(db, student_id: str, month_key: str) -> bool:
    payments = db.get_payments()
    return not _has_paid(payments, student_id, month_key) and not _has_pending(payments, student_id)


def has_paid(db, student_id: str, month_key: str) -> bool:
    return _has_paid(db.get_payments(), student_id, month_key)


def has_pending_approval(db, student_id: str) -> bool:
    return _has_pending(db.get_payments(), student_id)


def delinquent_students(db, month_key: str) -> List[User]:
    payments = db.get_payments()
    return [s for s in db.get_students()
            if not _has_paid(payments, s.id, month_key) and not _has_pending(payments, s.id)]


def revenue_summary(db, month_key: str) -> Dict:
    payments = db.get_payments()
    return {
        "month": month_key,
        "thisMonth": paid_total(p for p in payments if p.date.startswith(month_key)),
        "lifetime": paid_total(payments),
        "pendingAmount": sum(p.amount for p in payments if p.status == "PENDING"),
        "successCount": sum(1 for p in payments if p.status == "SUCCESS"),
    }


def send_reminder(db, actor: User, student_id: str, month: str) -> Message:
    require_teacher(actor, "send fee reminders")
    get_student(db, student_id)
    return db.send_automated_reminder(student_id, month)


CSV_HEADERS = ["Student", "Date", "Description", "Amount", "Status", "Transaction ID", "Method"]


def _format_amount(amount: float):
    return int(amount) if float(amount).is_integer() else amount


def export_csv(payments: Iterable[PaymentRecord], students: Iterable[User]) -> str:
    names = {s.id: s.name for s in students}
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for p in payments:
        writer.writerow([
            names.get(p.student_id, "Unknown"),
            p.date,
            p.description,
            _format_amount(p.amount),
            p.status,
            p.transaction_id or "N/A",
            p.payment_method or "Manual",
        ])
    return out.getvalue()


# ----------------------- Messages -----------------------

def send_message(db, actor: User, content: str, receiver_id: Optional[str] = None) -> Message:
    content = (content or "").strip()
    if not content:
        raise ValidationFailed("Message cannot be empty")
    if not actor.is_teacher:
        if receiver_id not in (None, TEACHER_ID):
            raise PermissionDenied("Students can only message the teacher")
        receiver_id = TEACHER_ID
    elif not receiver_id:
        raise ValidationFailed("Choose a student to message")
    msg = Message(
        id=new_id("msg"),
        sender_id=actor.id,
        receiver_id=receiver_id,
        content=content,
        timestamp=display_time(),
        is_read=False,
    )
    db.save_messages([*db.get_messages(), msg])
    return msg


def conversation_between(db, a: str, b: str) -> List[Message]:
    return [m for m in db.get_messages()
            if (m.sender_id == a and m.receiver_id == b) or (m.sender_id == b and m.receiver_id == a)]


def inbox_for(db, actor: User) -> List[Message]:
    return [m for m in db.get_messages() if m.sender_id == actor.id or m.receiver_id == actor.id]


def unread_count(db, reader_id: str, other_id: Optional[str] = None) -> int:
    return sum(1 for m in db.get_messages()
               if m.receiver_id == reader_id and not m.is_read
               and (other_id is None or m.sender_id == other_id))


def mark_read(db, actor: User, other_id: str) -> int:
    """Mark everything ``other_id`` sent to the actor as read; returns how many changed."""
    messages = db.get_messages()
    changed = 0
    for i, m in enumerate(messages):
        if m.receiver_id == actor.id and m.sender_id == other_id and not m.is_read:
            messages[i] = m.model_copy(update={"is_read": True})
            changed += 1
    if changed:
        db.save_messages(messages)
    return changed


def tel_link(user: User) -> str:
    return f"tel:{user.mobile}"


# ----------------------- Calendar -----------------------

def events_on(db, date: str) -> DayEvents:
    day = parse_day(date)
    announcements = [a for a in db.get_announcements() if a.date == date]
    has_classes = day.weekday() < 5 and len(db.get_schedule()) > 0
    return DayEvents(announcements=announcements, has_classes=has_classes)


def month_grid(year: int, month: int) -> List[List[Optional[int]]]:
    """Weeks of the month, Sunday first; cells outside the month are None."""
    weeks = calendar.Calendar(firstweekday=6).monthdayscalendar(year, month)
    return [[day or None for day in week] for week in weeks]


def add_announcement(db, actor: User, title: str, message: Optional[str], date: str) -> Announcement:
    require_teacher(actor, "post announcements")
    if not title or not title.strip():
        raise ValidationFailed("Title is required")
    parse_day(date)
    announcement = Announcement(id=new_id("ann"), title=title.strip(), message=message or "Special Event", date=date)
    db.save_announcements([announcement, *db.get_announcements()])
    logger.info("Announcement %s posted for %s", announcement.id, date)
    return announcement


def update_announcement(db, actor: User, announcement_id: str, changes: Dict) -> Announcement:
    require_teacher(actor, "edit announcements")
    data = {k: v for k, v in changes.items() if k in ("title", "message", "date") and v is not None}
    announcements = db.get_announcements()
    updated = _find(announcements, announcement_id, "Announcement").model_copy(update=data)
    db.save_announcements([updated if a.id == announcement_id else a for a in announcements])
    return updated


def delete_announcement(db, actor: User, announcement_id: str, confirmed: bool = False):
    require_teacher(actor, "delete announcements")
    if not confirmed:
        raise ConfirmationRequired("Delete this announcement?")
    announcements = db.get_announcements()
    _find(announcements, announcement_id, "Announcement")
    db.save_announcements([a for a in announcements if a.id != announcement_id])
    logger.info("Announcement %s deleted", announcement_id)


# ----------------------- Schedule -----------------------

def list_schedule(db) -> List[ScheduleItem]:
    return db.get_schedule()


def add_schedule_item(db, actor: User, time: str, subject: str, teacher: str) -> ScheduleItem:
    require_teacher(actor, "edit the schedule")
    item = ScheduleItem(id=new_id("sch"), time=time, subject=subject, teacher=teacher)
    db.save_schedule([*db.get_schedule(), item])
    return item


def update_schedule_item(db, actor: User, item_id: str, changes: Dict) -> ScheduleItem:
    require_teacher(actor, "edit the schedule")
    data = {k: v for k, v in changes.items() if k in ("time", "subject", "teacher") and v is not None}
    schedule = db.get_schedule()
    updated = _find(schedule, item_id, "Schedule item").model_copy(update=data)
    db.save_schedule([updated if s.id == item_id else s for s in schedule])
    return updated


# ----------------------- Dashboard -----------------------

def dashboard_stats(db, actor: User) -> Dict:
    students = db.get_students()
    attendance = db.get_attendance()
    tests = db.get_tests()
    payments = db.get_payments()
    if not actor.is_teacher:
        attendance = [a for a in attendance if a.student_id == actor.id]
        tests = [t for t in tests if t.student_id == actor.id]
        payments = [p for p in payments if p.student_id == actor.id]
    return {
        "totalStudents": len(students),
        "attendanceRate": attendance_rate(attendance),
        "avgScore": average_score(tests),
        "pendingPayments": sum(1 for p in payments if p.status == "PENDING"),
    }
