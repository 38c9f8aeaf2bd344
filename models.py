# models.py
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()


def iso(value):
    return value.isoformat() if value else None


# ----- People -----

class User(UserMixin, db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(80), nullable=False)
    last_name = db.Column(db.String(80), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(10), nullable=False, index=True)  # "teacher" | "student"
    level = db.Column(db.String(10), nullable=True)  # students only: "Level 3" .. "Level 5"
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    enrollments = db.relationship(
        "Enrollment", back_populates="student", cascade="all, delete-orphan",
        order_by="Enrollment.id",
    )
    courses = db.relationship(
        "Course", secondary="enrollments", viewonly=True, order_by="Enrollment.id",
    )
    owned_courses = db.relationship("Course", back_populates="teacher", order_by="Course.id")

    def set_password(self, raw: str):
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw: str) -> bool:
        return check_password_hash(self.password_hash, raw)

    @property
    def is_student(self):
        return self.role == "student"

    def to_summary(self):
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
        }

    def to_dict(self):
        data = self.to_summary()
        data.update({
            "role": self.role,
            "level": self.level,
            "courses": [c.id for c in self.courses] if self.is_student else [c.id for c in self.owned_courses],
            "createdAt": iso(self.created_at),
        })
        return data

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"


# ----- Courses -----

class Course(db.Model):
    __tablename__ = "courses"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    level = db.Column(db.String(10), nullable=False, index=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    teacher = db.relationship("User", back_populates="owned_courses")
    enrollments = db.relationship(
        "Enrollment", back_populates="course", cascade="all, delete-orphan",
        order_by="Enrollment.id",
    )
    students = db.relationship(
        "User", secondary="enrollments", viewonly=True, order_by="Enrollment.id",
    )
    assessments = db.relationship(
        "Assessment", back_populates="course", cascade="all, delete-orphan",
        order_by="Assessment.id",
    )

    def is_owned_by(self, user) -> bool:
        return user is not None and self.teacher_id == user.id

    def has_student(self, student_id) -> bool:
        return any(e.student_id == student_id for e in self.enrollments)

    def to_dict(self, expand=False):
        data = {
            "id": self.id,
            "name": self.name,
            "level": self.level,
            "teacher": self.teacher_id,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        if expand:
            data["students"] = [s.to_summary() for s in self.students]
            data["assessments"] = [a.to_dict() for a in self.assessments]
        else:
            data["students"] = [s.id for s in self.students]
            data["assessments"] = [a.id for a in self.assessments]
        return data


class Enrollment(db.Model):
    """One row per (course, student): both Course.students and User.courses read from here."""
    __tablename__ = "enrollments"
    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    course = db.relationship("Course", back_populates="enrollments")
    student = db.relationship("User", back_populates="enrollments")

    __table_args__ = (
        db.UniqueConstraint("course_id", "student_id", name="uq_enrollment_course_student"),
    )


# ----- Assessments -----

class Assessment(db.Model):
    __tablename__ = "assessments"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    type = db.Column(db.String(10), nullable=False)  # Formative | Summative
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False, index=True)
    max_marks = db.Column(db.Float, nullable=False)
    academic_year = db.Column(db.String(9), nullable=True, index=True)  # "2025-2026"
    term = db.Column(db.String(10), nullable=True, index=True)  # 1st Term | 2nd Term | 3rd Term
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    course = db.relationship("Course", back_populates="assessments")
    marks = db.relationship(
        "Mark", back_populates="assessment", cascade="all, delete-orphan",
        order_by="Mark.id",
    )

    def to_dict(self, expand_students=False):
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "course": self.course_id,
            "maxMarks": self.max_marks,
            "academicYear": self.academic_year,
            "term": self.term,
            "marks": [m.to_dict(expand_student=expand_students) for m in self.marks],
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class Mark(db.Model):
    __tablename__ = "marks"
    id = db.Column(db.Integer, primary_key=True)
    assessment_id = db.Column(db.Integer, db.ForeignKey("assessments.id"), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    score = db.Column(db.Float, nullable=False, default=0.0)
    comment = db.Column(db.Text, nullable=False, default="")

    assessment = db.relationship("Assessment", back_populates="marks")
    student = db.relationship("User")

    __table_args__ = (
        db.UniqueConstraint("assessment_id", "student_id", name="uq_mark_assessment_student"),
    )

    def to_dict(self, expand_student=False):
        return {
            "id": self.id,
            "student": self.student.to_summary() if expand_student else self.student_id,
            "score": self.score,
            "comment": self.comment or "",
        }
