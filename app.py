# app.py
from flask import Flask, request, jsonify, send_file
from flask_migrate import Migrate
from flask_login import login_required, current_user
from openpyxl import Workbook
from sqlalchemy import func
import io
import logging

from config import Config
from models import db, User, Course, Enrollment, Assessment, Mark
from forms import (
    LoginForm, RegisterForm, ForgotPasswordForm, ResetPasswordForm,
    CourseForm, EnrollStudentForm, AssessmentForm, MarkForm, MarkEntryForm,
)
from auth import (
    login_manager, issue_token, issue_reset_token, load_reset_token,
    role_required, require_course_owner, require_enrolled,
)
from errors import register_error_handlers, ValidationError, NotFound, Unauthenticated
from dashboards import (
    teacher_dashboard, student_dashboard, student_course_detail,
    course_roster_payload, academic_info,
)
from performance import AcademicPeriod, find_mark

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # ---- DB & Login setup
    db.init_app(app)
    Migrate(app, db)
    login_manager.init_app(app)
    register_error_handlers(app)

    LEVELS = app.config["LEVELS"]

    # ---- Helpers
    def json_body():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError(message="Request body must be a JSON object")
        return data

    def validated(form):
        if not form.validate():
            raise ValidationError(form.field_errors())
        return form

    def required_period():
        year = (request.args.get("academicYear") or "").strip()
        term = (request.args.get("term") or "").strip()
        if not year or not term:
            errors = {}
            if not year:
                errors["academicYear"] = ["Academic year is required"]
            if not term:
                errors["term"] = ["Term is required"]
            raise ValidationError(errors, message="Academic year and term are required")
        return AcademicPeriod(year, term)

    def optional_period():
        year = (request.args.get("academicYear") or "").strip()
        term = (request.args.get("term") or "").strip()
        if year and term:
            return AcademicPeriod(year, term)
        return None

    def get_course(course_id):
        course = db.session.get(Course, course_id)
        if course is None:
            raise NotFound("Course not found")
        return course

    def get_owned_course(course_id, action="modify"):
        course = get_course(course_id)
        require_course_owner(course, action)
        return course

    def get_owned_assessment(assessment_id, action="modify"):
        assessment = db.session.get(Assessment, assessment_id)
        if assessment is None:
            raise NotFound("Assessment not found")
        if assessment.course is None:
            raise NotFound("Course not found")
        require_course_owner(assessment.course, action)
        return assessment

    def clamp_score(score, max_marks):
        return min(float(score), float(max_marks))

    def build_marks(course, max_marks, items):
        """Validate a ``marks`` array and turn it into unsaved Mark rows.

        Scores above ``max_marks`` are clamped; every problem is collected
        before anything is written.
        """
        if items is None:
            return []
        if not isinstance(items, list):
            raise ValidationError({"marks": ["Marks must be an array"]})

        errors = {}
        rows = []
        seen = set()
        enrolled = {e.student_id for e in course.enrollments}
        for i, item in enumerate(items):
            prefix = f"marks[{i}]"
            if not isinstance(item, dict):
                errors[prefix] = ["Each mark must be an object"]
                continue
            form = MarkEntryForm.from_item(item)
            if not form.validate():
                for name, msgs in form.field_errors().items():
                    errors[f"{prefix}.{name}"] = msgs
                continue
            student_id = form.studentId.data
            if student_id in seen:
                errors[f"{prefix}.studentId"] = ["Duplicate mark for this student"]
                continue
            if student_id not in enrolled:
                errors[f"{prefix}.studentId"] = ["Student is not enrolled in this course"]
                continue
            seen.add(student_id)
            rows.append(Mark(
                student_id=student_id,
                score=clamp_score(form.score.data, max_marks),
                comment=form.comment.data or "",
            ))
        if errors:
            raise ValidationError(errors)
        return rows

    with app.app_context():
        db.create_all()

    @app.route("/")
    def index():
        return jsonify({"name": "markbook", "message": "Markbook API"})

    # ---- Auth

    @app.route("/auth/register", methods=["POST"])
    def auth_register():
        json_body()
        form = validated(RegisterForm())
        user = User(
            first_name=form.firstName.data,
            last_name=form.lastName.data,
            email=form.email.data.lower(),
            role=form.role.data,
            level=form.level.data if form.role.data == "student" else None,
        )
        user.set_password(form.password.data)
        db.session.add(user)
        db.session.commit()
        logger.info("Registered %s %s", user.role, user.id)
        return jsonify({"token": issue_token(user), "user": user.to_dict()}), 201

    @app.route("/auth/login", methods=["POST"])
    def auth_login():
        json_body()
        form = validated(LoginForm())
        user = User.query.filter(func.lower(User.email) == form.email.data.lower()).first()
        if not user or not user.check_password(form.password.data):
            logger.warning("Failed login for %s", form.email.data)
            raise Unauthenticated("Invalid email or password")
        return jsonify({"token": issue_token(user), "user": user.to_dict()})

    @app.route("/auth/me")
    @login_required
    def auth_me():
        return jsonify(current_user.to_dict())

    @app.route("/auth/forgot-password", methods=["POST"])
    def auth_forgot_password():
        json_body()
        form = validated(ForgotPasswordForm())
        user = User.query.filter(func.lower(User.email) == form.email.data.lower()).first()
        # same response whether or not the account exists
        if user:
            token = issue_reset_token(user)
            logger.info("Password reset token issued for user %s", user.id)
            logger.debug("Reset token for user %s: %s", user.id, token)
        return jsonify({"message": "If the account exists, password reset instructions have been sent"})

    @app.route("/auth/reset-password", methods=["POST"])
    def auth_reset_password():
        json_body()
        form = validated(ResetPasswordForm())
        user = load_reset_token(form.token.data)
        if user is None:
            raise ValidationError({"token": ["Invalid or expired reset token"]})
        user.set_password(form.password.data)
        db.session.commit()
        logger.info("Password reset for user %s", user.id)
        return jsonify({"message": "Password has been reset"})

    # ---- Teachers

    @app.route("/teachers/academic-info")
    @login_required
    @role_required("teacher")
    def teacher_academic_info():
        return jsonify(academic_info())

    @app.route("/teachers/dashboard")
    @login_required
    @role_required("teacher")
    def teacher_dashboard_view():
        period = required_period()
        return jsonify(teacher_dashboard(current_user, period, LEVELS))

    @app.route("/teachers/courses", methods=["POST"])
    @login_required
    @role_required("teacher")
    def teacher_create_course():
        json_body()
        form = validated(CourseForm())
        course = Course(name=form.name.data, level=form.level.data, teacher_id=current_user.id)
        db.session.add(course)
        db.session.commit()
        logger.info("Teacher %s created course %s", current_user.id, course.id)
        return jsonify(course.to_dict()), 201

    @app.route("/teachers/courses/<level>")
    @login_required
    @role_required("teacher")
    def teacher_courses_for_level(level):
        if level not in LEVELS:
            raise ValidationError({"level": ["Invalid level"]})
        courses = (Course.query
                   .filter_by(level=level, teacher_id=current_user.id)
                   .order_by(Course.id.asc())
                   .all())
        return jsonify([c.to_dict(expand=True) for c in courses])

    @app.route("/teachers/courses/<int:course_id>/students", methods=["POST"])
    @login_required
    @role_required("teacher")
    def teacher_add_student(course_id):
        course = get_owned_course(course_id)
        json_body()
        form = validated(EnrollStudentForm())

        student = db.session.get(User, form.studentId.data)
        if not student or not student.is_student:
            raise NotFound("Student not found")

        if not course.has_student(student.id):
            db.session.add(Enrollment(course=course, student=student))
            db.session.commit()
            logger.info("Enrolled student %s in course %s", student.id, course.id)

        return jsonify({"message": "Student added to course successfully"})

    @app.route("/teachers/courses/<int:course_id>/students/<int:student_id>", methods=["DELETE"])
    @login_required
    @role_required("teacher")
    def teacher_remove_student(course_id, student_id):
        course = get_owned_course(course_id)
        enrollment = Enrollment.query.filter_by(course_id=course.id, student_id=student_id).first()
        if enrollment:
            db.session.delete(enrollment)
            db.session.commit()
            logger.info("Removed student %s from course %s", student_id, course.id)
        return jsonify({"message": "Student removed from course successfully"})

    @app.route("/teachers/courses/<int:course_id>/students")
    @login_required
    @role_required("teacher")
    def teacher_course_students(course_id):
        course = get_owned_course(course_id, action="view")
        return jsonify(course_roster_payload(course, optional_period()))

    @app.route("/teachers/courses/<int:course_id>/students/export")
    @login_required
    @role_required("teacher")
    def teacher_course_students_export(course_id):
        course = get_owned_course(course_id, action="view")
        rows = course_roster_payload(course, optional_period())

        wb = Workbook()
        ws = wb.active
        ws.title = "Roster"

        headers = ["First name", "Last name", "Email", "Level", "Average", "Status", "Assessments"]
        ws.append(headers)
        for row in rows:
            ws.append([
                row["firstName"], row["lastName"], row["email"], row["level"] or "",
                row["average"], row["status"], row["totalAssessments"],
            ])

        ws.freeze_panes = "A2"
        for idx, h in enumerate(headers, start=1):
            ws.column_dimensions[chr(64 + idx)].width = 28 if h == "Email" else 14

        out = io.BytesIO()
        wb.save(out)
        out.seek(0)
        return send_file(
            out, as_attachment=True, download_name=f"course-{course.id}-roster.xlsx",
            mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )

    # ---- Courses

    @app.route("/courses/students")
    @login_required
    @role_required("teacher")
    def course_student_directory():
        students = (User.query
                    .filter_by(role="student")
                    .order_by(User.last_name.asc(), User.first_name.asc())
                    .all())
        return jsonify([dict(s.to_summary(), level=s.level) for s in students])

    @app.route("/courses/<int:course_id>", methods=["DELETE"])
    @login_required
    @role_required("teacher")
    def course_delete(course_id):
        course = get_owned_course(course_id, action="delete")
        db.session.delete(course)
        db.session.commit()
        logger.info("Teacher %s deleted course %s", current_user.id, course_id)
        return jsonify({"message": "Course deleted successfully"})

    # ---- Assessments

    @app.route("/assessments", methods=["POST"])
    @login_required
    @role_required("teacher")
    def assessment_create():
        data = json_body()
        form = AssessmentForm()
        ok = form.validate()
        course = None
        if form.courseId.data:
            course = get_owned_course(form.courseId.data, action="add assessments to")
        if not ok:
            raise ValidationError(form.field_errors())

        marks = build_marks(course, form.maxMarks.data, data.get("marks"))
        assessment = Assessment(
            name=form.name.data,
            type=form.type.data,
            course=course,
            max_marks=form.maxMarks.data,
            academic_year=form.academicYear.data or None,
            term=form.term.data or None,
        )
        assessment.marks.extend(marks)
        db.session.add(assessment)
        db.session.commit()
        logger.info("Created assessment %s in course %s with %d marks", assessment.id, course.id, len(marks))
        return jsonify(assessment.to_dict()), 201

    @app.route("/assessments/course/<int:course_id>")
    @login_required
    @role_required("teacher")
    def assessments_for_course(course_id):
        course = get_owned_course(course_id, action="view")
        return jsonify([a.to_dict(expand_students=True) for a in course.assessments])

    @app.route("/assessments/<int:assessment_id>/marks")
    @login_required
    @role_required("teacher")
    def assessment_marks(assessment_id):
        assessment = get_owned_assessment(assessment_id, action="view")
        return jsonify(assessment.to_dict(expand_students=True))

    @app.route("/assessments/<int:assessment_id>/marks", methods=["PUT", "POST"])
    @login_required
    @role_required("teacher")
    def assessment_set_marks(assessment_id):
        assessment = get_owned_assessment(assessment_id)
        data = json_body()
        if "marks" not in data:
            raise ValidationError({"marks": ["Marks must be an array"]})
        marks = build_marks(assessment.course, assessment.max_marks, data["marks"])

        # full replace: old rows go first so the (assessment, student) constraint holds
        assessment.marks.clear()
        db.session.flush()
        assessment.marks.extend(marks)
        db.session.commit()
        logger.info("Replaced marks on assessment %s (%d marks)", assessment.id, len(marks))
        return jsonify({"message": "Marks updated successfully", "assessment": assessment.to_dict()})

    @app.route("/assessments/<int:assessment_id>/marks/<int:student_id>", methods=["PUT"])
    @login_required
    @role_required("teacher")
    def assessment_update_mark(assessment_id, student_id):
        assessment = get_owned_assessment(assessment_id)
        json_body()
        form = validated(MarkForm())

        mark = find_mark(assessment, student_id)
        if mark is None:
            raise NotFound("Mark not found for this student")

        mark.score = clamp_score(form.score.data, assessment.max_marks)
        mark.comment = form.comment.data or ""
        db.session.commit()
        return jsonify({"message": "Mark updated successfully", "mark": mark.to_dict()})

    @app.route("/assessments/<int:assessment_id>", methods=["DELETE"])
    @login_required
    @role_required("teacher")
    def assessment_delete(assessment_id):
        assessment = get_owned_assessment(assessment_id, action="delete")
        course_id = assessment.course_id
        db.session.delete(assessment)
        db.session.commit()
        logger.info("Deleted assessment %s from course %s", assessment_id, course_id)
        return jsonify({"message": "Assessment deleted successfully"})

    # ---- Students

    @app.route("/students/academic-info")
    @login_required
    @role_required("student")
    def student_academic_info():
        return jsonify(academic_info())

    @app.route("/students/dashboard")
    @login_required
    @role_required("student")
    def student_dashboard_view():
        period = required_period()
        return jsonify(student_dashboard(current_user, period))

    @app.route("/students/courses/<int:course_id>")
    @login_required
    @role_required("student")
    def student_course_view(course_id):
        course = get_course(course_id)
        require_enrolled(course)
        return jsonify(student_course_detail(current_user, course, optional_period()))

    # ---- Critical: return the Flask app object
    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True)
