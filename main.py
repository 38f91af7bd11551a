import os
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Literal

from fastapi import FastAPI, Depends, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, ConfigDict, Field
from jose import jwt, JWTError

import config
import operations as ops
from database import FileStorage, StorageService
from exceptions import PortalError, NotAuthenticated, PermissionDenied, ValidationFailed
from insights import get_student_performance_insights
from schemas import User
from seed_data import TEACHER_ID
from session import SessionHolder, authenticate, teacher_user

config.configure_logging()
logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

storage = FileStorage(config.DATA_FILE)
db = StorageService(storage)
session_holder = SessionHolder(storage)

app = FastAPI(title="Raghubir Coaching Classes Portal API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    if exc.status_code >= 500:
        logger.error(f"Server Error: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# ----------------------- Utility Functions -----------------------

def get_db() -> StorageService:
    return db


def get_session() -> SessionHolder:
    return session_holder


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


# ----------------------- Schemas -----------------------
class LoginRequest(BaseModel):
    role: Literal["STUDENT", "TEACHER"] = "STUDENT"
    identifier: str = Field(..., description="Teacher username or student mobile")
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User


class CreateStudent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    mobile: str = Field(..., min_length=1)
    batch: Optional[str] = None
    class_: Optional[str] = Field(None, alias="class")
    section: Optional[str] = None


class UpdateStudent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    mobile: Optional[str] = None
    batch: Optional[str] = None
    class_: Optional[str] = Field(None, alias="class")
    section: Optional[str] = None


class ToggleAttendance(BaseModel):
    student_id: str
    date: str


class TestResultIn(BaseModel):
    student_id: str
    subject: str
    date: str
    marks_obtained: float = Field(..., ge=0)
    total_marks: float = Field(100, gt=0)
    grade: str = "A"


class PaymentIn(BaseModel):
    student_id: Optional[str] = None
    amount: float = 5000
    description: Optional[str] = None
    method: Optional[str] = "UPI"
    proof_image: Optional[str] = None
    transaction_id: Optional[str] = None
    date: Optional[str] = None


class ReminderIn(BaseModel):
    student_id: str
    month: Optional[str] = None


class MessageIn(BaseModel):
    content: str
    receiver_id: Optional[str] = None


class AnnouncementIn(BaseModel):
    title: str
    message: Optional[str] = None
    date: str


class AnnouncementUpdate(BaseModel):
    title: Optional[str] = None
    message: Optional[str] = None
    date: Optional[str] = None


class ScheduleItemIn(BaseModel):
    time: str
    subject: str
    teacher: str


class ScheduleItemUpdate(BaseModel):
    time: Optional[str] = None
    subject: Optional[str] = None
    teacher: Optional[str] = None


# ----------------------- Auth Helpers -----------------------
def get_current_user(token: Optional[str] = Depends(oauth2_scheme),
                     session: SessionHolder = Depends(get_session)) -> User:
    if not token:
        raise NotAuthenticated("Not authenticated")
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        raise NotAuthenticated("Invalid token")
    current = session.current
    if current is None or current.id != payload.get("sub"):
        raise NotAuthenticated("Session expired, please log in again")
    return current


# ----------------------- Health -----------------------
@app.get("/")
def read_root():
    return {"message": "Raghubir Coaching Classes Portal API running"}


@app.get("/health")
def health(store: StorageService = Depends(get_db)):
    return {
        "ok": True,
        "time": datetime.now(timezone.utc).isoformat(),
        "storage": type(store.storage).__name__,
    }


# ----------------------- Auth Endpoints -----------------------
@app.post("/auth/login", response_model=Token)
def login(payload: LoginRequest, store: StorageService = Depends(get_db),
          session: SessionHolder = Depends(get_session)):
    user = authenticate(store, payload.role, payload.identifier, payload.password)
    session.login(user)
    token = create_access_token({"sub": user.id, "role": user.role})
    return Token(access_token=token, user=user)


@app.post("/auth/logout")
def logout(session: SessionHolder = Depends(get_session), current: User = Depends(get_current_user)):
    session.logout()
    return {"status": "logged-out"}


@app.get("/me")
def me(current: User = Depends(get_current_user)):
    return current


# ----------------------- Student Endpoints -----------------------
@app.get("/students")
def list_students(q: Optional[str] = None, store: StorageService = Depends(get_db),
                  current: User = Depends(get_current_user)):
    students = ops.list_students(store)
    if q:
        needle = q.lower()
        students = [s for s in students if needle in s.name.lower() or needle in s.mobile]
    return {"items": students}


@app.post("/students")
def create_student(student: CreateStudent, store: StorageService = Depends(get_db),
                   current: User = Depends(get_current_user)):
    return ops.add_student(store, current, student.name, student.mobile,
                           batch=student.batch, class_=student.class_, section=student.section)


@app.get("/students/{student_id}")
def get_student(student_id: str, store: StorageService = Depends(get_db),
                current: User = Depends(get_current_user)):
    return ops.get_student(store, student_id)


@app.put("/students/{student_id}")
def update_student(student_id: str, payload: UpdateStudent, store: StorageService = Depends(get_db),
                   current: User = Depends(get_current_user)):
    return ops.update_student(store, current, student_id, payload.model_dump(exclude_none=True))


@app.delete("/students/{student_id}")
def delete_student(student_id: str, confirm: bool = False, store: StorageService = Depends(get_db),
                   current: User = Depends(get_current_user)):
    ops.delete_student(store, current, student_id, confirmed=confirm)
    return {"status": "deleted"}


# ----------------------- Attendance -----------------------
@app.post("/attendance/toggle")
def toggle_attendance(payload: ToggleAttendance, store: StorageService = Depends(get_db),
                      current: User = Depends(get_current_user)):
    status = ops.toggle_status(store, current, payload.student_id, payload.date)
    return {"student_id": payload.student_id, "date": payload.date, "status": status}


@app.get("/attendance")
def list_attendance(student_id: Optional[str] = None, store: StorageService = Depends(get_db),
                    current: User = Depends(get_current_user)):
    records = ops.attendance_for(store, current, student_id or current.id)
    return {"items": records, "rate": ops.attendance_rate(records)}


@app.get("/attendance/{date}")
def attendance_sheet(date: str, store: StorageService = Depends(get_db),
                     current: User = Depends(get_current_user)):
    ops.parse_day(date)
    if current.is_teacher:
        return {"date": date, "statuses": ops.attendance_sheet(store, date)}
    return {"date": date, "statuses": {current.id: ops.status_for(store, current.id, date)}}


# ----------------------- Tests -----------------------
@app.get("/tests")
def list_tests(student_id: Optional[str] = None, store: StorageService = Depends(get_db),
               current: User = Depends(get_current_user)):
    records = ops.results_for(store, current, student_id or current.id)
    items = [{**r.to_json(), "percentage": ops.percentage_for(r)} for r in records]
    return {"items": items, "average": ops.average_score(records)}


@app.post("/tests")
def create_test_result(payload: TestResultIn, store: StorageService = Depends(get_db),
                       current: User = Depends(get_current_user)):
    return ops.add_result(store, current, payload.student_id, payload.subject, payload.date,
                          payload.marks_obtained, payload.total_marks, payload.grade)


@app.get("/tests/insights")
async def student_insights(student_id: Optional[str] = None, store: StorageService = Depends(get_db),
                        current: User = Depends(get_current_user)):
    target_id = student_id or current.id
    tests = ops.results_for(store, current, target_id)
    attendance = ops.attendance_for(store, current, target_id)
    student = next((s for s in store.get_students() if s.id == target_id), current)
    insight = await get_student_performance_insights(student.name, tests, attendance)
    return {"student_id": target_id, "insight": insight}


# ----------------------- Payments -----------------------
@app.get("/payments")
def list_payments(student_id: Optional[str] = None, store: StorageService = Depends(get_db),
                  current: User = Depends(get_current_user)):
    return {"items": ops.payments_for(store, current, student_id)}


@app.post("/payments")
def create_payment(payload: PaymentIn, store: StorageService = Depends(get_db),
                   current: User = Depends(get_current_user)):
    return ops.record_payment(
        store, current,
        payload.student_id or current.id,
        payload.amount,
        payload.description,
        payload.method,
        payload.proof_image,
        transaction_id=payload.transaction_id,
        date=payload.date,
    )


@app.post("/payments/{payment_id}/approve")
def approve_payment(payment_id: str, store: StorageService = Depends(get_db),
                    current: User = Depends(get_current_user)):
    return ops.approve(store, current, payment_id)


@app.get("/payments/progress")
def payment_progress(student_id: Optional[str] = None, store: StorageService = Depends(get_db),
                     current: User = Depends(get_current_user)):
    return ops.fee_progress(store, current, student_id)


@app.get("/payments/status")
def payment_status(month: Optional[str] = None, student_id: Optional[str] = None,
                   store: StorageService = Depends(get_db), current: User = Depends(get_current_user)):
    target_id = student_id or current.id
    if current.is_teacher and target_id == current.id:
        raise ValidationFailed("student_id is required")
    ops.require_self_or_teacher(current, target_id)
    month_key = month or ops.current_month_key()
    return {
        "month": month_key,
        "studentId": target_id,
        "delinquent": ops.is_delinquent(store, target_id, month_key),
        "pendingApproval": ops.has_pending_approval(store, target_id),
    }


@app.get("/payments/delinquent")
def delinquent(month: Optional[str] = None, store: StorageService = Depends(get_db),
               current: User = Depends(get_current_user)):
    ops.require_teacher(current, "view delinquent students")
    month_key = month or ops.current_month_key()
    return {"month": month_key, "items": ops.delinquent_students(store, month_key)}


@app.get("/payments/revenue")
def revenue(month: Optional[str] = None, store: StorageService = Depends(get_db),
            current: User = Depends(get_current_user)):
    ops.require_teacher(current, "view revenue")
    return ops.revenue_summary(store, month or ops.current_month_key())


@app.get("/payments/export")
def export_payments(student_id: Optional[str] = None, store: StorageService = Depends(get_db),
                    current: User = Depends(get_current_user)):
    payments = ops.payments_for(store, current, student_id)
    content = ops.export_csv(payments, store.get_students())
    label = (student_id or "all") if current.is_teacher else current.name
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="RCC_Transactions_{label}.csv"'},
    )


@app.post("/payments/reminders")
def send_reminder(payload: ReminderIn, store: StorageService = Depends(get_db),
                  current: User = Depends(get_current_user)):
    month = payload.month or datetime.now().strftime("%B")
    return ops.send_reminder(store, current, payload.student_id, month)


# ----------------------- Messages -----------------------
@app.get("/messages")
def inbox(store: StorageService = Depends(get_db), current: User = Depends(get_current_user)):
    return {"items": ops.inbox_for(store, current), "unread": ops.unread_count(store, current.id)}


@app.get("/messages/{other_id}")
def conversation(other_id: str, store: StorageService = Depends(get_db),
                 current: User = Depends(get_current_user)):
    if not current.is_teacher and other_id != TEACHER_ID:
        raise PermissionDenied("Students can only read their conversation with the teacher")
    return {
        "items": ops.conversation_between(store, current.id, other_id),
        "unread": ops.unread_count(store, current.id, other_id),
    }


@app.post("/messages")
def send_message(payload: MessageIn, store: StorageService = Depends(get_db),
                 current: User = Depends(get_current_user)):
    return ops.send_message(store, current, payload.content, receiver_id=payload.receiver_id)


@app.post("/messages/{other_id}/read")
def mark_read(other_id: str, store: StorageService = Depends(get_db),
              current: User = Depends(get_current_user)):
    return {"marked": ops.mark_read(store, current, other_id)}


@app.get("/contact/{user_id}")
def contact(user_id: str, store: StorageService = Depends(get_db),
            current: User = Depends(get_current_user)):
    user = teacher_user() if user_id == TEACHER_ID else ops.get_student(store, user_id)
    return {"id": user.id, "name": user.name, "tel": ops.tel_link(user)}


# ----------------------- Calendar -----------------------
@app.get("/calendar/day/{date}")
def day_events(date: str, store: StorageService = Depends(get_db),
               current: User = Depends(get_current_user)):
    events = ops.events_on(store, date)
    schedule = ops.list_schedule(store) if events.has_classes else []
    return {"date": date, "announcements": events.announcements, "hasClasses": events.has_classes,
            "schedule": schedule}


@app.get("/calendar/{year}/{month}")
def month_view(year: int, month: int, store: StorageService = Depends(get_db),
               current: User = Depends(get_current_user)):
    if not 1 <= month <= 12:
        raise ValidationFailed("Month must be between 1 and 12")
    prefix = f"{year:04d}-{month:02d}"
    return {
        "year": year,
        "month": month,
        "weeks": ops.month_grid(year, month),
        "announcements": [a for a in store.get_announcements() if a.date.startswith(prefix)],
    }


# ----------------------- Announcements -----------------------
@app.get("/announcements")
def list_announcements(limit: int = 20, store: StorageService = Depends(get_db),
                       current: User = Depends(get_current_user)):
    return {"items": store.get_announcements()[:limit]}


@app.post("/announcements")
def create_announcement(payload: AnnouncementIn, store: StorageService = Depends(get_db),
                        current: User = Depends(get_current_user)):
    return ops.add_announcement(store, current, payload.title, payload.message, payload.date)


@app.put("/announcements/{announcement_id}")
def update_announcement(announcement_id: str, payload: AnnouncementUpdate, store: StorageService = Depends(get_db),
                        current: User = Depends(get_current_user)):
    return ops.update_announcement(store, current, announcement_id, payload.model_dump(exclude_none=True))


@app.delete("/announcements/{announcement_id}")
def delete_announcement(announcement_id: str, confirm: bool = False, store: StorageService = Depends(get_db),
                        current: User = Depends(get_current_user)):
    ops.delete_announcement(store, current, announcement_id, confirmed=confirm)
    return {"status": "deleted"}


# ----------------------- Schedule -----------------------
@app.get("/schedule")
def list_schedule(store: StorageService = Depends(get_db), current: User = Depends(get_current_user)):
    return {"items": ops.list_schedule(store)}


@app.post("/schedule")
def create_schedule_item(payload: ScheduleItemIn, store: StorageService = Depends(get_db),
                         current: User = Depends(get_current_user)):
    return ops.add_schedule_item(store, current, payload.time, payload.subject, payload.teacher)


@app.put("/schedule/{item_id}")
def update_schedule_item(item_id: str, payload: ScheduleItemUpdate, store: StorageService = Depends(get_db),
                         current: User = Depends(get_current_user)):
    return ops.update_schedule_item(store, current, item_id, payload.model_dump(exclude_none=True))


# ----------------------- Dashboard -----------------------
@app.get("/dashboard")
def dashboard(store: StorageService = Depends(get_db), current: User = Depends(get_current_user)):
    stats = ops.dashboard_stats(store, current)
    if not current.is_teacher:
        stats["hasPendingDues"] = not ops.has_paid(store, current.id, ops.current_month_key())
    return stats


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
