"""Core data models for accounts, RBAC, NOC applications, inspections, and certificates."""
import uuid
from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db


def generate_uuid() -> str:
    return str(uuid.uuid4())


APP_ROLES: tuple[str, ...] = (
    "applicant",
    "fire_officer",
    "senior_officer",
    "admin",
)

STAFF_ROLES: tuple[str, ...] = ("fire_officer", "senior_officer", "admin")

APPLICATION_STATUSES: tuple[str, ...] = (
    "draft",
    "submitted",
    "under_review",
    "inspection_scheduled",
    "inspection_completed",
    "approved",
    "rejected",
    "requires_compliance",
)

APPLICATION_TYPES: tuple[str, ...] = (
    "new",
    "renewal",
    "amendment",
)

BUILDING_CATEGORIES: tuple[str, ...] = (
    "residential",
    "commercial",
    "hospital",
    "school",
    "factory",
    "mall",
    "hotel",
    "warehouse",
    "office",
    "mixed_use",
    "other",
)

RISK_LEVELS: tuple[str, ...] = (
    "low",
    "medium",
    "high",
    "critical",
)

INSPECTION_STATUSES: tuple[str, ...] = (
    "scheduled",
    "in_progress",
    "completed",
    "cancelled",
    "rescheduled",
)

NOC_STATUSES: tuple[str, ...] = (
    "active",
    "revoked",
)

NOTIFICATION_TYPES: tuple[str, ...] = (
    "info",
    "success",
    "warning",
    "error",
)

GRIEVANCE_STATUSES: tuple[str, ...] = (
    "submitted",
    "under_review",
    "resolved",
    "closed",
)

EMAIL_DELIVERY_STATUSES: tuple[str, ...] = (
    "SENT",
    "FAILED",
)


def _in_clause(column: str, values: tuple[str, ...]) -> str:
    quoted = ",".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    full_name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(32), nullable=True)
    organization = db.Column(db.String(255), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    last_login_at = db.Column(db.DateTime, nullable=True)

    roles = db.relationship("UserRole", back_populates="user", cascade="all, delete-orphan")
    buildings = db.relationship("Building", back_populates="owner", lazy="dynamic")
    applications = db.relationship(
        "Application",
        back_populates="applicant",
        lazy="dynamic",
        foreign_keys="Application.applicant_id",
    )
    notifications = db.relationship("Notification", back_populates="user", lazy="dynamic")
    grievances = db.relationship("Grievance", back_populates="submitter", lazy="dynamic")
    audit_logs = db.relationship("AuditLog", back_populates="user", lazy="dynamic")

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password, method="pbkdf2:sha256", salt_length=16)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def role_names(self) -> set[str]:
        """Assigned roles; an identity without role rows is a plain applicant."""
        names = {assignment.role for assignment in self.roles}
        return names or {"applicant"}

    @property
    def is_staff(self) -> bool:
        return bool(self.role_names & set(STAFF_ROLES))

    @property
    def is_admin(self) -> bool:
        return "admin" in self.role_names

    def profile_payload(self) -> dict:
        return {
            "id": self.id,
            "fullName": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "organization": self.organization,
            "roles": sorted(self.role_names),
            "createdAt": self.created_at.isoformat(),
        }


class UserRole(db.Model):
    __tablename__ = "user_roles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    role = db.Column(db.String(30), nullable=False)
    assigned_by = db.Column(db.String(36), nullable=True)
    assigned_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("user_id", "role", name="uq_user_role"),
        db.CheckConstraint(_in_clause("role", APP_ROLES), name="ck_user_role_valid"),
    )

    user = db.relationship("User", back_populates="roles")


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action_type = db.Column(db.String(50), nullable=False, index=True)
    entity_type = db.Column(db.String(50), nullable=True)
    entity_id = db.Column(db.String(64), nullable=True, index=True)
    details = db.Column(db.JSON, nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    user = db.relationship("User", back_populates="audit_logs")


class Building(db.Model):
    __tablename__ = "buildings"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    owner_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(30), nullable=False, index=True)
    address = db.Column(db.String(500), nullable=False)
    city = db.Column(db.String(120), nullable=False, index=True)
    state = db.Column(db.String(120), nullable=True)
    pincode = db.Column(db.String(12), nullable=False)
    floors = db.Column(db.Integer, nullable=False)
    area_sqft = db.Column(db.Integer, nullable=False)
    year_built = db.Column(db.Integer, nullable=True)
    occupancy_capacity = db.Column(db.Integer, nullable=True)
    risk_score = db.Column(db.Integer, nullable=True)
    risk_level = db.Column(db.String(20), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint(_in_clause("category", BUILDING_CATEGORIES), name="ck_building_category_valid"),
        db.CheckConstraint(
            "risk_level IS NULL OR " + _in_clause("risk_level", RISK_LEVELS),
            name="ck_building_risk_level_valid",
        ),
    )

    owner = db.relationship("User", back_populates="buildings")
    applications = db.relationship("Application", back_populates="building", lazy="dynamic")

    def payload(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "floors": self.floors,
            "areaSqft": self.area_sqft,
            "yearBuilt": self.year_built,
            "occupancyCapacity": self.occupancy_capacity,
            "riskScore": self.risk_score,
            "riskLevel": self.risk_level,
        }


class Application(db.Model):
    __tablename__ = "applications"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    # Drafts have no number until they are submitted.
    application_number = db.Column(db.String(32), unique=True, nullable=True, index=True)
    building_id = db.Column(db.String(36), db.ForeignKey("buildings.id"), nullable=False, index=True)
    applicant_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    application_type = db.Column(db.String(20), nullable=False, default="new")
    status = db.Column(db.String(30), nullable=False, default="draft", index=True)
    purpose = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    submitted_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint(_in_clause("status", APPLICATION_STATUSES), name="ck_application_status_valid"),
        db.CheckConstraint(_in_clause("application_type", APPLICATION_TYPES), name="ck_application_type_valid"),
        db.CheckConstraint(
            "(status = 'rejected' AND rejection_reason IS NOT NULL) OR "
            "(status <> 'rejected' AND rejection_reason IS NULL)",
            name="ck_application_rejection_reason",
        ),
    )

    building = db.relationship("Building", back_populates="applications")
    applicant = db.relationship("User", back_populates="applications", foreign_keys=[applicant_id])
    inspection = db.relationship(
        "Inspection",
        back_populates="application",
        uselist=False,
        cascade="all, delete-orphan",
    )
    noc = db.relationship("NOC", back_populates="application", uselist=False)
    status_history = db.relationship(
        "ApplicationStatusHistory",
        back_populates="application",
        order_by="ApplicationStatusHistory.changed_at",
        cascade="all, delete-orphan",
    )
    email_logs = db.relationship(
        "EmailAuditLog",
        back_populates="application",
        order_by="EmailAuditLog.sent_at",
        cascade="all, delete-orphan",
    )

    @property
    def detail_path(self) -> str:
        return f"/applications/{self.id}"

    def summary_payload(self) -> dict:
        return {
            "id": self.id,
            "applicationNumber": self.application_number,
            "applicationType": self.application_type,
            "status": self.status,
            "buildingName": self.building.name if self.building else None,
            "submittedAt": self.submitted_at.isoformat() if self.submitted_at else None,
            "createdAt": self.created_at.isoformat(),
        }

    def detail_payload(self) -> dict:
        payload = self.summary_payload()
        payload.update(
            {
                "applicantId": self.applicant_id,
                "purpose": self.purpose,
                "notes": self.notes,
                "rejectionReason": self.rejection_reason,
                "building": self.building.payload() if self.building else None,
                "inspection": self.inspection.payload() if self.inspection else None,
                "noc": self.noc.payload() if self.noc else None,
                "history": [entry.payload() for entry in self.status_history],
                "updatedAt": self.updated_at.isoformat(),
            }
        )
        return payload


class ApplicationStatusHistory(db.Model):
    __tablename__ = "application_status_history"

    id = db.Column(db.Integer, primary_key=True)
    application_id = db.Column(db.String(36), db.ForeignKey("applications.id"), nullable=False, index=True)
    previous_status = db.Column(db.String(30), nullable=True)
    new_status = db.Column(db.String(30), nullable=False, index=True)
    remarks = db.Column(db.String(500), nullable=True)
    changed_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    changed_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        db.CheckConstraint(_in_clause("new_status", APPLICATION_STATUSES), name="ck_status_history_valid"),
    )

    application = db.relationship("Application", back_populates="status_history")
    actor = db.relationship("User")

    def payload(self) -> dict:
        return {
            "previousStatus": self.previous_status,
            "newStatus": self.new_status,
            "remarks": self.remarks,
            "changedBy": self.changed_by,
            "changedAt": self.changed_at.isoformat(),
        }


class Inspection(db.Model):
    __tablename__ = "inspections"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    application_id = db.Column(db.String(36), db.ForeignKey("applications.id"), nullable=False, index=True)
    building_id = db.Column(db.String(36), db.ForeignKey("buildings.id"), nullable=False, index=True)
    officer_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    scheduled_date = db.Column(db.Date, nullable=False)
    scheduled_time = db.Column(db.String(20), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="scheduled", index=True)
    findings = db.Column(db.Text, nullable=True)
    recommendations = db.Column(db.Text, nullable=True)
    overall_score = db.Column(db.Integer, nullable=True)
    photos = db.Column(db.JSON, nullable=False, default=list)
    arrival_time = db.Column(db.DateTime, nullable=True)
    departure_time = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint(_in_clause("status", INSPECTION_STATUSES), name="ck_inspection_status_valid"),
        db.CheckConstraint(
            "overall_score IS NULL OR (overall_score >= 0 AND overall_score <= 100)",
            name="ck_inspection_score_range",
        ),
    )

    application = db.relationship("Application", back_populates="inspection")
    building = db.relationship("Building")
    officer = db.relationship("User")

    def payload(self) -> dict:
        return {
            "id": self.id,
            "applicationId": self.application_id,
            "officerId": self.officer_id,
            "scheduledDate": self.scheduled_date.isoformat(),
            "scheduledTime": self.scheduled_time,
            "status": self.status,
            "findings": self.findings,
            "recommendations": self.recommendations,
            "overallScore": self.overall_score,
            "photos": list(self.photos or []),
            "arrivalTime": self.arrival_time.isoformat() if self.arrival_time else None,
            "departureTime": self.departure_time.isoformat() if self.departure_time else None,
        }


class NOC(db.Model):
    __tablename__ = "nocs"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    noc_number = db.Column(db.String(32), unique=True, nullable=False, index=True)
    application_id = db.Column(db.String(36), db.ForeignKey("applications.id"), unique=True, nullable=False)
    building_id = db.Column(db.String(36), db.ForeignKey("buildings.id"), nullable=False, index=True)
    issued_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    issued_to = db.Column(db.String(150), nullable=False)
    issue_date = db.Column(db.Date, nullable=False)
    valid_from = db.Column(db.Date, nullable=False)
    valid_until = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="active", index=True)
    conditions = db.Column(db.JSON, nullable=False, default=list)
    verification_hash = db.Column(db.String(64), nullable=False)
    revoked_at = db.Column(db.DateTime, nullable=True)
    revocation_reason = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint(_in_clause("status", NOC_STATUSES), name="ck_noc_status_valid"),
    )

    application = db.relationship("Application", back_populates="noc")
    building = db.relationship("Building")
    issuer = db.relationship("User")

    def payload(self) -> dict:
        return {
            "id": self.id,
            "nocNumber": self.noc_number,
            "applicationId": self.application_id,
            "issuedTo": self.issued_to,
            "issueDate": self.issue_date.isoformat(),
            "validFrom": self.valid_from.isoformat(),
            "validUntil": self.valid_until.isoformat(),
            "status": self.status,
            "conditions": list(self.conditions or []),
            "verificationHash": self.verification_hash,
            "revokedAt": self.revoked_at.isoformat() if self.revoked_at else None,
            "revocationReason": self.revocation_reason,
        }


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(20), nullable=False, default="info")
    action_url = db.Column(db.String(500), nullable=True)
    read = db.Column(db.Boolean, nullable=False, default=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        db.CheckConstraint(_in_clause("type", NOTIFICATION_TYPES), name="ck_notification_type_valid"),
    )

    user = db.relationship("User", back_populates="notifications")

    def payload(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "actionUrl": self.action_url,
            "read": self.read,
            "createdAt": self.created_at.isoformat(),
        }


class Grievance(db.Model):
    __tablename__ = "grievances"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    grievance_number = db.Column(db.String(32), unique=True, nullable=False, index=True)
    submitted_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    application_id = db.Column(db.String(36), db.ForeignKey("applications.id"), nullable=True, index=True)
    category = db.Column(db.String(60), nullable=False)
    subject = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="submitted", index=True)
    resolution = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint(_in_clause("status", GRIEVANCE_STATUSES), name="ck_grievance_status_valid"),
    )

    submitter = db.relationship("User", back_populates="grievances")
    application = db.relationship("Application")

    def payload(self) -> dict:
        return {
            "id": self.id,
            "grievanceNumber": self.grievance_number,
            "applicationId": self.application_id,
            "category": self.category,
            "subject": self.subject,
            "description": self.description,
            "status": self.status,
            "resolution": self.resolution,
            "createdAt": self.created_at.isoformat(),
        }


class NumberSequence(db.Model):
    """Per-day counter backing human-readable identifiers."""

    __tablename__ = "number_sequences"

    prefix = db.Column(db.String(8), primary_key=True)
    bucket = db.Column(db.String(8), primary_key=True)
    last_value = db.Column(db.Integer, nullable=False, default=0)


class EmailAuditLog(db.Model):
    __tablename__ = "email_audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    application_id = db.Column(db.String(36), db.ForeignKey("applications.id"), nullable=True, index=True)
    recipient_email = db.Column(db.String(255), nullable=False)
    subject = db.Column(db.String(255), nullable=False)
    email_body_snapshot = db.Column(db.Text, nullable=False)
    sent_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    delivery_status = db.Column(db.String(20), nullable=False, index=True)
    error_message = db.Column(db.Text, nullable=True)

    __table_args__ = (
        db.CheckConstraint(
            _in_clause("delivery_status", EMAIL_DELIVERY_STATUSES),
            name="ck_email_delivery_status",
        ),
    )

    application = db.relationship("Application", back_populates="email_logs")
