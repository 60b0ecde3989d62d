"""
Unit tests for the per-resource stores, data processors and statistics.
"""

from datetime import datetime, timezone

import pytest

from lms_sync.core.exceptions import LmsSyncError, ResourceNotFoundError, ValidationError
from lms_sync.resources.courses import CourseStore, course_stats, process_course
from lms_sync.resources.factory import build_store
from lms_sync.resources.lessons import LessonStore, lesson_stats, process_lesson
from lms_sync.resources.questions import QuestionStore, process_question, question_stats
from lms_sync.resources.quizzes import QuizStore, process_quiz, quiz_stats
from lms_sync.resources.users import UserStore, parse_timestamp, process_user, user_stats
from lms_sync.schemas.core import ListResult
from lms_sync.schemas.stats import CourseStats, LessonStats, QuestionStats, QuizStats, UserStats
from lms_sync.services.courses import sanitize_course
from lms_sync.services.lessons import sanitize_lesson
from lms_sync.services.questions import sanitize_question
from lms_sync.services.quizzes import sanitize_quiz
from lms_sync.services.users import sanitize_user
from tests.factories import ApiResponseFactory


def course(meta=None, **kwargs):
    return process_course(sanitize_course(ApiResponseFactory.course_response(meta=meta, **kwargs)))


def quiz(meta=None, **kwargs):
    return process_quiz(sanitize_quiz(ApiResponseFactory.quiz_response(meta=meta, **kwargs)))


def question(meta=None, **kwargs):
    return process_question(sanitize_question(ApiResponseFactory.question_response(meta=meta, **kwargs)))


def lesson(meta=None, **kwargs):
    return process_lesson(sanitize_lesson(ApiResponseFactory.lesson_response(meta=meta, **kwargs)))


async def loaded(store_class, service, items, **options):
    service.get_all.return_value = ListResult(data=items)
    store = store_class(service, auto_fetch=False, **options)
    await store.fetch_items(reset=True)
    return store


class TestCourses:
    """Test suite for course processing and statistics."""

    def test_process_course(self):
        """Test the derived course fields."""
        item = course(
            meta={"_course_price": "100", "_sale_price": "80", "_featured": "yes", "_lesson_count": 0, "_completion_rate": "45"}
        )

        assert item["price"] == 100.0
        assert item["sale_price"] == 80.0
        assert item["on_sale"] is True
        assert item["featured"] is True
        assert item["has_lessons"] is False
        assert item["has_students"] is True
        assert item["completion_rate"] == 45

    def test_process_defaults(self):
        """Test defaults for a course without meta."""
        item = process_course({"id": 1, "meta": {}})

        assert item["difficulty"] == "intermediate"
        assert item["category"] == "general"
        assert item["price"] == 0.0
        assert item["on_sale"] is False

    def test_stats(self):
        """Test course aggregates, with free courses excluded from the price average."""
        courses = [
            course(meta={"_course_price": "100", "_course_category": "math", "_course_duration": "10"}, status="publish"),
            course(meta={"_course_price": "51", "_course_category": "math", "_course_duration": "5"}, status="draft"),
            course(meta={"_course_price": "0", "_course_category": "art", "_course_duration": "0"}, status="private"),
        ]

        stats = course_stats(courses)

        assert stats.total == 3
        assert (stats.published, stats.draft, stats.private) == (1, 1, 1)
        assert stats.average_price == 76
        assert stats.average_duration == 5
        assert stats.by_category == {"math": 2, "art": 1}
        assert stats.total_lessons == 15
        assert stats.total_students == 36

    def test_empty_stats(self):
        """Test zeroed statistics."""
        assert course_stats([]) == CourseStats()

    @pytest.mark.asyncio
    async def test_actions(self, mock_service):
        """Test the course shortcut actions."""
        store = await loaded(CourseStore, mock_service, [course(id=3)])
        mock_service.update.return_value = {"id": 3}

        await store.publish(3)
        await store.unpublish(3)
        await store.toggle_featured(3, True)
        await store.update_price(3, 20)
        await store.update_price(3, 20, sale_price=15)

        payloads = [call.args for call in mock_service.update.await_args_list]
        assert payloads == [
            (3, {"status": "publish"}),
            (3, {"status": "draft"}),
            (3, {"featured": True}),
            (3, {"price": 20}),
            (3, {"price": 20, "sale_price": 15}),
        ]

    @pytest.mark.asyncio
    async def test_initial_filters(self, mock_service):
        """Test the course filter defaults reach the service."""
        store = CourseStore(mock_service, category="science", auto_fetch=False)
        await store.fetch_items(reset=True)

        mock_service.get_all.assert_awaited_once_with(
            {"category": "science", "status": "publish,draft,private", "page": 1, "per_page": 20}
        )


class TestQuizzes:
    """Test suite for quiz processing, statistics and actions."""

    def test_process_quiz(self):
        """Test the derived quiz fields."""
        item = quiz(
            meta={
                "_quiz_question_ids": [1, 2],
                "_time_limit": "30",
                "_max_attempts": "3",
                "_randomize_questions": "yes",
                "_passing_score": "",
            }
        )

        assert item["question_count"] == 2
        assert item["passing_score"] == 70
        assert item["has_time_limit"] is True
        assert item["has_attempt_limit"] is True
        assert item["is_randomized"] is True
        assert item["show_results"] is False

    def test_computed_time_limit_wins(self):
        """Test the REST-computed time limit over the meta value."""
        item = process_quiz({"id": 1, "_time_limit": "15", "meta": {"_time_limit": "0"}})
        assert item["time_limit"] == 15

    def test_stats(self):
        """Test quiz aggregates."""
        quizzes = [
            quiz(meta={"_quiz_question_ids": [1, 2, 3], "_total_points": "10", "_quiz_type": "exam"}),
            quiz(meta={"_quiz_question_ids": [4], "_total_points": "5", "_time_limit": "20"}),
        ]

        stats = quiz_stats(quizzes)

        assert stats.total_questions == 4
        assert stats.average_questions == 2
        assert stats.total_points == 15
        assert stats.average_points == 8
        assert stats.by_type == {"exam": 1, "standard": 1}
        assert stats.with_time_limit == 1

    def test_empty_stats(self):
        """Test zeroed statistics."""
        assert quiz_stats([]) == QuizStats()

    @pytest.mark.asyncio
    async def test_add_question(self, mock_service):
        """Test appending a question id."""
        store = await loaded(QuizStore, mock_service, [quiz(id=5, meta={"_quiz_question_ids": [1]})])
        mock_service.update.return_value = {"id": 5}

        await store.add_question(5, 2)

        mock_service.update.assert_awaited_once_with(5, {"question_ids": [1, 2]})

    @pytest.mark.asyncio
    async def test_add_existing_question_is_a_no_op(self, mock_service):
        """Test that a question already in the quiz is not re-sent."""
        store = await loaded(QuizStore, mock_service, [quiz(id=5, meta={"_quiz_question_ids": [1]})])

        result = await store.add_question(5, 1)

        assert result["id"] == 5
        mock_service.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_remove_and_reorder(self, mock_service):
        """Test removing and reordering question ids."""
        store = await loaded(QuizStore, mock_service, [quiz(id=5, meta={"_quiz_question_ids": [1, 2, 3]})])
        mock_service.update.return_value = {"id": 5}

        await store.remove_question(5, 2)
        await store.reorder_questions(5, (3, 1))

        assert [call.args for call in mock_service.update.await_args_list] == [
            (5, {"question_ids": [1, 3]}),
            (5, {"question_ids": [3, 1]}),
        ]

    @pytest.mark.asyncio
    async def test_unknown_quiz(self, mock_service):
        """Test question assignment on a quiz not in the list."""
        store = await loaded(QuizStore, mock_service, [])

        with pytest.raises(ResourceNotFoundError):
            await store.add_question(1, 2)

    @pytest.mark.asyncio
    async def test_update_settings_whitelist(self, mock_service):
        """Test that only known settings are sent."""
        store = await loaded(QuizStore, mock_service, [quiz(id=5)])
        mock_service.update.return_value = {"id": 5}

        await store.update_settings(5, {"passing_score": 80, "show_results": True, "title": "Hacked"})

        mock_service.update.assert_awaited_once_with(5, {"passing_score": 80, "show_results": True})


class TestQuestions:
    """Test suite for question processing, statistics and actions."""

    def test_process_question(self):
        """Test the derived question fields."""
        item = question(meta={"_question_type": "true_false", "_provider": "ai", "_explanation": "Because"})

        assert item["is_true_false"] is True
        assert item["is_multiple_choice"] is False
        assert item["is_ai_generated"] is True
        assert item["has_explanation"] is True
        assert item["points"] == 1
        assert item["has_options"] is True

    def test_stats(self):
        """Test question aggregates."""
        questions = [
            question(meta={"_points": "2", "_question_type": "essay"}),
            question(meta={"_points": "1"}),
            question(meta={"_points": "1", "_provider": "imported"}),
        ]

        stats = question_stats(questions)

        assert stats.total_points == 4
        assert stats.average_points == 1.3
        assert stats.essay_questions == 1
        assert stats.multiple_choice_questions == 2
        assert stats.by_provider == {"custom": 2, "imported": 1}

    def test_empty_stats(self):
        """Test zeroed statistics."""
        assert question_stats([]) == QuestionStats()

    @pytest.mark.asyncio
    async def test_option_editing(self, mock_service):
        """Test adding and removing answer options."""
        store = await loaded(
            QuestionStore, mock_service, [question(id=8, meta={"_question_options": ["a", "b", "c"]})]
        )
        mock_service.update.return_value = {"id": 8}
        mock_service.get_one.return_value = sanitize_question(
            ApiResponseFactory.question_response(id=8, meta={"_question_options": ["a", "b", "c"]})
        )

        await store.add_option(8, "d")
        await store.remove_option(8, 1)

        assert [call.args for call in mock_service.update.await_args_list] == [
            (8, {"options": ["a", "b", "c", "d"]}),
            (8, {"options": ["a", "c"]}),
        ]

    @pytest.mark.asyncio
    async def test_field_actions(self, mock_service):
        """Test the single-field update shortcuts."""
        store = await loaded(QuestionStore, mock_service, [question(id=8)])
        mock_service.update.return_value = {"id": 8}

        await store.update_order(8, 3)
        await store.update_type(8, "essay")
        await store.update_correct_answer(8, "b")
        await store.update_explanation(8, "See chapter 2")

        assert [call.args[1] for call in mock_service.update.await_args_list] == [
            {"question_order": 3},
            {"type": "essay"},
            {"correct_answer": "b"},
            {"explanation": "See chapter 2"},
        ]

    @pytest.mark.asyncio
    async def test_bulk_create(self, mock_service):
        """Test per-item results and the final refresh."""
        store = await loaded(QuestionStore, mock_service, [])
        mock_service.create.side_effect = [{"id": 1}, ValidationError(["Question title is required"]), {"id": 3}]
        mock_service.get_all.reset_mock()

        results = await store.bulk_create([{"title": "A"}, {"title": ""}, {"title": "C"}])

        assert [item["id"] for item in results["successful"]] == [1, 3]
        assert results["failed"] == [
            {"data": {"title": ""}, "error": "Validation failed: Question title is required"}
        ]
        mock_service.get_all.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_bulk_create_rejects_empty_input(self, mock_service):
        """Test that an empty batch is an error."""
        store = QuestionStore(mock_service, auto_fetch=False)

        with pytest.raises(ValidationError):
            await store.bulk_create([])

    @pytest.mark.asyncio
    async def test_duplicate_sends_question_type(self, mock_service):
        """Test that the copy payload carries the type under the key the service writes."""
        store = await loaded(QuestionStore, mock_service, [question(id=8, meta={"_question_type": "essay"})])
        mock_service.create.return_value = {"id": 9}

        await store.duplicate_item(8)

        payload = mock_service.create.await_args.args[0]
        assert payload["type"] == "essay"
        assert "question_type" not in payload
        assert payload["status"] == "draft"


class TestLessons:
    """Test suite for lesson processing, statistics and actions."""

    def test_process_lesson(self):
        """Test the derived lesson fields."""
        item = lesson(
            meta={
                "_lesson_steps": ["Watch", "Read"],
                "_has_quiz": "yes",
                "_quiz_id": 5,
                "_video_url": "https://video.test/1",
                "_lesson_order": "4",
            }
        )

        assert item["steps_count"] == 2
        assert item["has_steps"] is True
        assert item["has_quiz"] is True
        assert item["quiz_id"] == 5
        assert item["has_video"] is True
        assert item["is_required"] is True
        assert item["lesson_order"] == 4
        assert item["duration_minutes"] == 15
        assert item["lesson_type"] == "video"

    def test_process_defaults(self):
        """Test fallbacks for a lesson without meta."""
        item = process_lesson(sanitize_lesson({"id": 1}))

        assert item["course_id"] is None
        assert item["lesson_type"] == "mixed"
        assert item["content_type"] == "free"
        assert item["completion_criteria"] == "view"
        assert item["steps"] == []
        assert item["is_required"] is False
        assert item["has_prerequisites"] is False
        assert item["has_video"] is False

    def test_stats(self):
        """Test lesson aggregates."""
        lessons = [
            lesson(
                meta={
                    "_lesson_steps": ["a", "b"],
                    "_duration_minutes": "20",
                    "_video_url": "https://video.test/2",
                    "_has_quiz": "yes",
                }
            ),
            lesson(
                meta={
                    "_lesson_steps": [],
                    "_duration_minutes": "10",
                    "_lesson_type": "text",
                    "_is_required": "no",
                    "_prerequisite_lessons": [1],
                },
                status="draft",
            ),
        ]

        stats = lesson_stats(lessons)

        assert stats.total == 2
        assert stats.published == 1
        assert stats.draft == 1
        assert stats.total_steps == 2
        assert stats.average_steps_per_lesson == 1
        assert stats.total_duration == 30
        assert stats.average_duration == 15
        assert stats.by_type == {"video": 1, "text": 1}
        assert stats.with_quizzes == 1
        assert stats.with_video == 1
        assert stats.with_prerequisites == 1
        assert stats.required_lessons == 1

    def test_empty_stats(self):
        """Test zeroed statistics."""
        assert lesson_stats([]) == LessonStats()

    @pytest.mark.asyncio
    async def test_actions(self, mock_service):
        """Test the lesson shortcut actions."""
        store = await loaded(LessonStore, mock_service, [lesson(id=6)])
        mock_service.update.return_value = {"id": 6}

        await store.publish(6)
        await store.unpublish(6)
        await store.update_order(6, 2)
        await store.move_to_course(6, 11)
        await store.update_type(6, "quiz")

        assert [call.args for call in mock_service.update.await_args_list] == [
            (6, {"status": "publish"}),
            (6, {"status": "draft"}),
            (6, {"lesson_order": 2}),
            (6, {"course_id": 11}),
            (6, {"lesson_type": "quiz"}),
        ]

    @pytest.mark.asyncio
    async def test_step_editing(self, mock_service):
        """Test adding and removing lesson steps."""
        store = await loaded(LessonStore, mock_service, [lesson(id=6, meta={"_lesson_steps": ["a", "b"]})])
        mock_service.update.return_value = {"id": 6}
        mock_service.get_one.return_value = sanitize_lesson(
            ApiResponseFactory.lesson_response(id=6, meta={"_lesson_steps": ["a", "b"]})
        )

        await store.add_step(6, "c")
        await store.remove_step(6, 0)

        assert [call.args for call in mock_service.update.await_args_list] == [
            (6, {"steps": ["a", "b", "c"]}),
            (6, {"steps": ["b"]}),
        ]

    @pytest.mark.asyncio
    async def test_unknown_lesson(self, mock_service):
        """Test step editing on a lesson not in the list."""
        store = await loaded(LessonStore, mock_service, [])

        with pytest.raises(ResourceNotFoundError):
            await store.add_step(1, "x")

    @pytest.mark.asyncio
    async def test_initial_filters(self, mock_service):
        """Test the lesson filter defaults reach the service."""
        store = LessonStore(mock_service, course_id=12, auto_fetch=False)
        await store.fetch_items(reset=True)

        mock_service.get_all.assert_awaited_once_with(
            {"course_id": 12, "status": "publish,draft,private", "page": 1, "per_page": 20}
        )


class TestUsers:
    """Test suite for user processing, statistics and actions."""

    def test_process_user(self):
        """Test enrollment fields derived from meta."""
        raw = ApiResponseFactory.user_response(
            roles=["editor", "author"],
            meta={
                "_enrolled_course_3": True,
                "_enrolled_course_3_date": "2024-03-01T00:00:00",
                "_course_3_progress": 40,
                "_enrolled_course_5": True,
                "_course_5_progress": "80",
            },
        )
        user = process_user(sanitize_user(raw))

        assert user["primary_role"] == "editor"
        assert user["enrolled_courses"] == [3, 5]
        assert user["is_enrolled"] is True
        assert user["progress"] == 60
        assert user["enrollment_date"] == "2024-03-01T00:00:00"

    def test_parse_timestamp(self):
        """Test WordPress date parsing."""
        assert parse_timestamp("2024-01-02T03:04:05") == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert parse_timestamp("2024-01-02T03:04:05Z").tzinfo is not None
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None

    def test_stats(self):
        """Test user aggregates against a fixed clock."""
        now = datetime(2024, 6, 10, tzinfo=timezone.utc)
        users = [
            {"roles": ["administrator"], "is_enrolled": False, "progress": 0, "date_registered": "2024-06-08T00:00:00"},
            {"roles": ["subscriber"], "is_enrolled": True, "progress": 50, "date_registered": "2024-01-01T00:00:00"},
            {"roles": [], "is_enrolled": True, "progress": 25, "date_registered": None},
        ]

        stats = user_stats(users, now=now)

        assert stats.total_users == 3
        assert stats.users_by_role == {"administrator": 1, "subscriber": 2}
        assert stats.enrolled_users == 2
        assert stats.unenrolled_users == 1
        assert stats.average_progress == 25
        assert stats.recent_registrations == 1

    def test_empty_stats(self):
        """Test zeroed statistics."""
        assert user_stats([]) == UserStats()

    @pytest.mark.asyncio
    async def test_role_and_enrollment(self, mock_service):
        """Test role changes and enrollment meta writes."""
        store = await loaded(UserStore, mock_service, [process_user(sanitize_user({"id": 2, "username": "u"}))])
        mock_service.update.return_value = {"id": 2}

        await store.update_role(2, "editor")
        await store.enroll_in_course(2, 7)
        await store.unenroll_from_course(2, 7)

        role_call, enroll_call, unenroll_call = mock_service.update.await_args_list
        assert role_call.args == (2, {"roles": ["editor"]})
        enroll_meta = enroll_call.args[1]["meta"]
        assert enroll_meta["_enrolled_course_7"] is True
        assert enroll_meta["_course_7_progress"] == 0
        assert "_enrolled_course_7_date" in enroll_meta
        assert unenroll_call.args == (2, {"meta": {"_enrolled_course_7": None}})

    @pytest.mark.asyncio
    async def test_user_filters(self, mock_service):
        """Test that the role filter reaches the service."""
        store = UserStore(mock_service, role="editor", auto_fetch=False)
        await store.fetch_items(reset=True)

        mock_service.get_all.assert_awaited_once_with({"role": "editor", "page": 1, "per_page": 20})

    @pytest.mark.asyncio
    async def test_users_cannot_be_duplicated(self, mock_service):
        """Test that duplicate is refused for users."""
        store = await loaded(UserStore, mock_service, [{"id": 2}])

        with pytest.raises(LmsSyncError):
            await store.duplicate_item(2)
        mock_service.create.assert_not_awaited()


class TestBuildStore:
    """Test suite for the resource factory."""

    @pytest.mark.parametrize(
        "resource, store_class",
        [
            ("courses", CourseStore),
            ("quizzes", QuizStore),
            ("questions", QuestionStore),
            ("users", UserStore),
            ("lessons", LessonStore),
        ],
    )
    def test_builds_each_resource(self, make_client, resource, store_class):
        """Test that page size and debounce come from settings."""
        client = make_client(lambda request: None)
        store = build_store(resource, client, auto_fetch=False)

        assert isinstance(store, store_class)
        assert store.pagination.per_page == client.settings.default_per_page
        assert store.service.client is client

    def test_unknown_resource(self, make_client):
        """Test that an unknown resource name is rejected."""
        with pytest.raises(KeyError):
            build_store("widgets", make_client(lambda request: None))
