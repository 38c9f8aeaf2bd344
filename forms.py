# forms.py
import math

from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import StringField, PasswordField, SelectField, IntegerField, FloatField
from wtforms.validators import DataRequired, Length, NumberRange, Optional, Regexp, ValidationError
from sqlalchemy import func

from config import Config
from models import User

EMAIL_RE = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def clean_text(value):
    if value is None:
        return None
    return str(value).strip()


def as_text(value):
    if value is None:
        return None
    return str(value)


def choices_for(values):
    return [(v, v) for v in values]


def scalar_formdata(formdata):
    """Drop JSON nulls and flatten objects to text so number fields report a parse error."""
    cleaned = MultiDict()
    for key, value in formdata.items(multi=True):
        if value is None:
            continue
        if isinstance(value, (dict, list)):
            value = str(value)
        cleaned.add(key, value)
    return cleaned


class ApiForm(FlaskForm):
    """Base for JSON request bodies: Flask-WTF reads ``request.get_json()`` on submit."""

    class Meta:
        csrf = False

        def wrap_formdata(self, form, formdata):
            formdata = super().wrap_formdata(form, formdata)
            if formdata is None:
                return None
            return scalar_formdata(formdata)

    def field_errors(self):
        return {field.name: list(field.errors) for field in self if field.errors}


# --- Identity ---

class LoginForm(ApiForm):
    email = StringField("Email", filters=[clean_text], validators=[DataRequired(), Length(max=255)])
    password = PasswordField("Password", filters=[as_text], validators=[DataRequired()])


class RegisterForm(ApiForm):
    firstName = StringField("First name", filters=[clean_text], validators=[DataRequired(), Length(min=1, max=80)])
    lastName = StringField("Last name", filters=[clean_text], validators=[DataRequired(), Length(min=1, max=80)])
    email = StringField("Email", filters=[clean_text], validators=[
        DataRequired(), Length(max=255), Regexp(EMAIL_RE, message="Invalid email address."),
    ])
    password = PasswordField("Password", filters=[as_text], validators=[DataRequired(), Length(min=6, max=128)])
    role = SelectField("Role", choices=choices_for(("teacher", "student")), validators=[DataRequired()])
    level = SelectField("Level", choices=choices_for(Config.LEVELS), validators=[Optional()])

    def validate_email(self, field):
        existing = User.query.filter(func.lower(User.email) == field.data.lower()).first()
        if existing:
            raise ValidationError("Email already registered.")

    def validate(self, extra_validators=None):
        ok = super().validate(extra_validators=extra_validators)
        if self.role.data == "student" and not self.level.data:
            self.level.errors = list(self.level.errors) + ["Level is required for students."]
            ok = False
        return ok


class ForgotPasswordForm(ApiForm):
    email = StringField("Email", filters=[clean_text], validators=[DataRequired(), Length(max=255)])


class ResetPasswordForm(ApiForm):
    token = StringField("Token", validators=[DataRequired()])
    password = PasswordField("New password", filters=[as_text], validators=[DataRequired(), Length(min=6, max=128)])


# --- Courses ---

class CourseForm(ApiForm):
    name = StringField("Course name", filters=[clean_text], validators=[
        DataRequired(message="Course name is required"), Length(max=120),
    ])
    level = SelectField("Level", choices=choices_for(Config.LEVELS), validators=[DataRequired()])


class EnrollStudentForm(ApiForm):
    studentId = IntegerField("Student", validators=[DataRequired(message="Valid student ID is required")])


# --- Assessments & marks ---

class AssessmentForm(ApiForm):
    name = StringField("Assessment name", filters=[clean_text], validators=[
        DataRequired(message="Assessment name is required"), Length(max=120),
    ])
    type = SelectField("Type", choices=choices_for(Config.ASSESSMENT_TYPES), validators=[DataRequired()])
    courseId = IntegerField("Course", validators=[DataRequired(message="Valid course ID is required")])
    maxMarks = FloatField("Max marks")
    academicYear = StringField("Academic year", filters=[clean_text], validators=[
        Optional(), Regexp(r"^\d{4}-\d{4}$", message="Academic year must look like 2025-2026"),
    ])
    term = SelectField("Term", choices=choices_for(Config.TERMS), validators=[Optional()])

    def validate_maxMarks(self, field):
        if field.data is None or not math.isfinite(field.data) or field.data <= 0:
            raise ValidationError("Max marks must be a positive number")


class MarkForm(ApiForm):
    """Single mark update: ``PUT /assessments/<id>/marks/<studentId>``."""
    score = FloatField("Score", validators=[NumberRange(min=0, message="Score must be a non-negative number")])
    comment = StringField("Comment", filters=[clean_text], validators=[Optional(), Length(max=1000)])


class MarkEntryForm(MarkForm):
    """One entry of a ``marks`` array."""
    studentId = IntegerField("Student", validators=[DataRequired(message="Valid student ID is required")])

    @classmethod
    def from_item(cls, item):
        return cls(formdata=MultiDict(item))
