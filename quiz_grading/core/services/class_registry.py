"""In-memory store for quizzes, classes and their assignments."""

from __future__ import annotations

from quiz_grading.core.errors import NotFoundError, ValidationError
from quiz_grading.core.models import Assignment, ClassRoom, Quiz, Student


class ClassRegistry:
    """Holds the read side the grading core consumes: quizzes, rosters, assignments."""

    def __init__(self) -> None:
        self._quizzes: dict[str, Quiz] = {}
        self._classes: dict[str, ClassRoom] = {}
        self._assignments: dict[str, Assignment] = {}

    # --- Quizzes ---

    def add_quiz(self, quiz: Quiz) -> None:
        if quiz.id in self._quizzes:
            raise ValidationError(f"Quiz {quiz.id} already exists.")
        question_ids = [question.id for question in quiz.questions]
        if len(set(question_ids)) != len(question_ids):
            raise ValidationError("Question ids must be unique within a quiz.")
        self._quizzes[quiz.id] = quiz

    def get_quiz(self, quiz_id: str) -> Quiz:
        quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            raise NotFoundError(f"Quiz {quiz_id} not found.")
        return quiz

    # --- Classes ---

    def add_class(self, classroom: ClassRoom) -> None:
        if classroom.id in self._classes:
            raise ValidationError(f"Class {classroom.id} already exists.")
        self._classes[classroom.id] = classroom

    def get_class_roster(self, class_id: str) -> ClassRoom:
        classroom = self._classes.get(class_id)
        if classroom is None:
            raise NotFoundError(f"Class {class_id} not found.")
        return classroom

    def enroll_student(self, class_id: str, student: Student) -> None:
        self.get_class_roster(class_id).students[student.id] = student

    def remove_student(self, class_id: str, student_id: str) -> None:
        classroom = self.get_class_roster(class_id)
        if classroom.students.pop(student_id, None) is None:
            raise NotFoundError(f"Student {student_id} is not enrolled in class {class_id}.")

    # --- Assignments ---

    def add_assignment(self, assignment: Assignment) -> None:
        if assignment.id in self._assignments:
            raise ValidationError(f"Assignment {assignment.id} already exists.")
        self._assignments[assignment.id] = assignment

    def get_assignment(self, assignment_id: str) -> Assignment:
        assignment = self._assignments.get(assignment_id)
        if assignment is None:
            raise NotFoundError(f"Assignment {assignment_id} not found.")
        return assignment

    def get_assignments(self, class_id: str) -> list[Assignment]:
        """Return the class's assignments, earliest due date first."""
        assignments = [a for a in self._assignments.values() if a.class_id == class_id]
        return sorted(assignments, key=lambda a: a.due_date)

    def remove_assignment(self, assignment_id: str) -> Assignment:
        assignment = self._assignments.pop(assignment_id, None)
        if assignment is None:
            raise NotFoundError(f"Assignment {assignment_id} not found.")
        return assignment
