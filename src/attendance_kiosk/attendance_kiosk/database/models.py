"""SQLite tables backing the local cache."""

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class IdentityRow(Base):
    """Mirror of remote identities (students)."""

    __tablename__ = "identities"

    id = Column(String(64), primary_key=True)
    external_id = Column(String(64), nullable=False, index=True)
    full_name = Column(String(200), nullable=False)
    tag_id = Column(String(64), nullable=False, index=True)
    enrolled_courses = Column(Text, nullable=False, default="")  # comma-separated
    biometric_descriptor = Column(LargeBinary, nullable=True)  # computed locally
    photo_url = Column(String(500), nullable=True)


class ScheduleRow(Base):
    """Mirror of remote schedule entries."""

    __tablename__ = "schedule_entries"

    id = Column(String(64), primary_key=True)
    course_code = Column(String(64), nullable=False, index=True)
    course_name = Column(String(200), nullable=False)
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM
    days = Column(String(64), nullable=False, default="")  # e.g. "Mon,Wed"
    kiosk_id = Column(String(64), nullable=False, index=True)


class AttendanceLogRow(Base):
    """Attendance records created on this kiosk."""

    __tablename__ = "attendance_logs"
    __table_args__ = (UniqueConstraint("external_id", "course_code", "date", name="uq_log_person_course_day"),)

    local_id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String(64), nullable=False, index=True)
    full_name = Column(String(200), nullable=True)
    course_code = Column(String(64), nullable=False)
    kiosk_id = Column(String(64), nullable=False)
    date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    timestamp = Column(DateTime, nullable=False)
    sync_status = Column(String(16), nullable=False, index=True)
    push_attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
