from __future__ import annotations

from ..extensions import db
from ..utils import to_utc_z

APPOINTMENT_SCHEDULED = "scheduled"
APPOINTMENT_CONFIRMED = "confirmed"
APPOINTMENT_WAITING = "waiting"
APPOINTMENT_IN_PROGRESS = "in_progress"
APPOINTMENT_ABSENT = "absent"
APPOINTMENT_COMPLETED = "completed"
APPOINTMENT_CANCELED = "canceled"

VALID_APPOINTMENT_STATUSES = (
    APPOINTMENT_SCHEDULED,
    APPOINTMENT_CONFIRMED,
    APPOINTMENT_WAITING,
    APPOINTMENT_IN_PROGRESS,
    APPOINTMENT_ABSENT,
    APPOINTMENT_COMPLETED,
    APPOINTMENT_CANCELED,
)

# No transitions out of these
FINAL_APPOINTMENT_STATUSES = (APPOINTMENT_COMPLETED, APPOINTMENT_CANCELED)


class Appointment(db.Model):
    """
    A client's booking with one professional.

    Completing or canceling an appointment cascades to its order
    (see services/appointment_service.py).
    """
    __tablename__ = "appointments"
    __table_args__ = (
        db.Index("ix_appointments_employee_start", "employee_id", "start_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=True)

    start_time = db.Column(db.DateTime(timezone=True), nullable=True)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=APPOINTMENT_SCHEDULED, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    client = db.relationship("User", foreign_keys=[client_id])
    employee = db.relationship("User", foreign_keys=[employee_id])
    service = db.relationship("Service")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "employee_id": self.employee_id,
            "service_id": self.service_id,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time),
            "notes": self.notes,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
