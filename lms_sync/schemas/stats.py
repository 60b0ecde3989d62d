"""
Aggregate statistics models derived from a store's item list.
"""

from pydantic import BaseModel, Field


class StatusStats(BaseModel):
    """Counts by publication status."""

    total: int = 0
    published: int = 0
    draft: int = 0
    private: int = 0


class CourseStats(StatusStats):
    total_students: int = 0
    total_lessons: int = 0
    average_price: int = 0
    average_duration: int = 0
    average_completion_rate: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)
    by_difficulty: dict[str, int] = Field(default_factory=dict)
    featured_count: int = 0
    on_sale_count: int = 0


class QuizStats(StatusStats):
    total_questions: int = 0
    average_questions: int = 0
    total_points: int = 0
    average_points: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    by_difficulty: dict[str, int] = Field(default_factory=dict)
    with_time_limit: int = 0
    with_attempt_limit: int = 0
    randomized: int = 0


class QuestionStats(StatusStats):
    total_points: int = 0
    average_points: float = 0.0
    by_type: dict[str, int] = Field(default_factory=dict)
    by_difficulty: dict[str, int] = Field(default_factory=dict)
    by_provider: dict[str, int] = Field(default_factory=dict)
    with_explanation: int = 0
    with_time_limit: int = 0
    multiple_choice_questions: int = 0
    true_false_questions: int = 0
    short_answer_questions: int = 0
    essay_questions: int = 0


class UserStats(BaseModel):
    total_users: int = 0
    users_by_role: dict[str, int] = Field(default_factory=dict)
    enrolled_users: int = 0
    unenrolled_users: int = 0
    average_progress: int = 0
    recent_registrations: int = 0


class LessonStats(StatusStats):
    total_steps: int = 0
    average_steps_per_lesson: int = 0
    total_duration: int = 0
    average_duration: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    with_quizzes: int = 0
    with_video: int = 0
    with_prerequisites: int = 0
    required_lessons: int = 0
