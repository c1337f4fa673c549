"""Grading, eligibility and weighted-results engine for classroom quizzes."""
