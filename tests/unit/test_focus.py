"""Tests for focus task selection."""

from fignotes.models import Effort, InternalStatus, Priority
from fignotes.sync.focus import select_focus


class TestSelectFocus:
    """Tests for select_focus."""

    def test_nothing_actionable(self, make_task):
        tasks = [
            make_task("a", resolved=True),
            make_task("b", internal_status=InternalStatus.DONE),
            make_task("c", ignored=True),
        ]
        assert select_focus(tasks, "alice") is None
        assert select_focus([], "alice") is None

    def test_assigned_to_me_beats_critical(self, make_task):
        tasks = [
            make_task("t1", assignee="alice", priority=Priority.LOW),
            make_task("t2", priority=Priority.CRITICAL),
        ]
        assert select_focus(tasks, "alice").comment_id == "t1"

    def test_critical_without_user(self, make_task):
        tasks = [
            make_task("t1", assignee="alice", priority=Priority.LOW),
            make_task("t2", priority=Priority.CRITICAL),
        ]
        assert select_focus(tasks, None).comment_id == "t2"

    def test_assignee_match_ignores_case_and_at(self, make_task):
        tasks = [make_task("t1", assignee="@Alice"), make_task("t2", priority=Priority.CRITICAL)]
        assert select_focus(tasks, "alice").comment_id == "t1"

    def test_oldest_first_then_largest(self, make_task, now):
        tasks = [
            make_task("new", days_old=1),
            make_task("old-small", days_old=5, effort=Effort.SMALL),
            make_task("old-large", days_old=5, effort=Effort.LARGE),
        ]
        assert select_focus(tasks).comment_id == "old-large"

    def test_ignored_never_chosen(self, make_task):
        tasks = [make_task("a", priority=Priority.CRITICAL, ignored=True), make_task("b")]
        assert select_focus(tasks).comment_id == "b"

    def test_pure(self, make_task):
        tasks = [make_task("a", days_old=2), make_task("b", days_old=2)]
        assert select_focus(tasks).comment_id == select_focus(list(reversed(tasks))).comment_id == "a"

    def test_my_critical_task_beats_other_assignee(self, make_task):
        tasks = [
            make_task("a", assignee="bob", priority=Priority.MEDIUM, days_old=1),
            make_task("b", assignee="alice", priority=Priority.CRITICAL, days_old=2),
        ]
        assert select_focus(tasks, "alice").comment_id == "b"
