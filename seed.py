# seed.py
from app import create_app
from models import db, User, Course, Enrollment, Assessment, Mark
from dashboards import academic_year_for, term_for
from datetime import date


def seed():
    app = create_app()
    with app.app_context():
        db.drop_all()
        db.create_all()

        year = academic_year_for(date.today())
        term = term_for(date.today())

        # Teachers
        teachers = []
        for i in range(1, 3):
            t = User(first_name="Teacher", last_name=str(i), email=f"teacher{i}@school.test", role="teacher")
            t.set_password(f"password{i}")
            teachers.append(t)

        # Students, two per level
        students = []
        for n, level in enumerate(("Level 3", "Level 3", "Level 4", "Level 4", "Level 5", "Level 5"), start=1):
            s = User(first_name="Student", last_name=str(n), email=f"student{n}@school.test",
                     role="student", level=level)
            s.set_password("student123")
            students.append(s)

        db.session.add_all(teachers + students)
        db.session.flush()  # so ids exist

        # One course per level for teacher 1, each with its level's students
        for level in ("Level 3", "Level 4", "Level 5"):
            course = Course(name=f"Mathematics ({level})", level=level, teacher=teachers[0])
            db.session.add(course)
            level_students = [s for s in students if s.level == level]
            for s in level_students:
                db.session.add(Enrollment(course=course, student=s))

            quiz = Assessment(name="Quiz 1", type="Formative", course=course, max_marks=20,
                              academic_year=year, term=term)
            exam = Assessment(name="Mid-term exam", type="Summative", course=course, max_marks=100,
                              academic_year=year, term=term)
            for offset, s in enumerate(level_students):
                quiz.marks.append(Mark(student=s, score=14 + offset * 4, comment=""))
                exam.marks.append(Mark(student=s, score=55 + offset * 20, comment=""))
            db.session.add_all([quiz, exam])

        db.session.commit()

        print(f"Seeded: 2 teachers (teacher1@school.test/password1), 6 students (password 'student123'), "
              f"3 courses with assessments for {year} {term}.")


if __name__ == "__main__":
    seed()
