"""Unit tests for the entity services."""

import threading

import pytest

import reports
from services import (
    InvalidRecord,
    ProjectService,
    ResourceService,
    TaskService,
    UNKNOWN_USER,
    UserService,
    merge_for_create,
    merge_for_update,
)


@pytest.fixture
def projects(database):
    return ProjectService(database)


@pytest.fixture
def tasks(database):
    return TaskService(database)


@pytest.fixture
def users(database):
    return UserService(database)


@pytest.fixture
def resources(database, users):
    return ResourceService(database, users)


class TestMerge:
    """Field precedence for create and update."""

    def test_create_server_fields_win(self):
        record = merge_for_create({"id": "mine", "createdAt": "x", "updatedAt": "y", "name": "P"}, "NOW")

        assert record["id"] != "mine"
        assert record["createdAt"] == record["updatedAt"] == "NOW"
        assert record["name"] == "P"

    def test_create_without_update_tracking(self):
        record = merge_for_create({"updatedAt": "y"}, "NOW", track_updates=False)
        assert "updatedAt" not in record

    def test_update_keeps_id_and_created_at(self):
        existing = {"id": "a", "createdAt": "then", "updatedAt": "then", "tags": ["x", "y"], "name": "Old"}
        record = merge_for_update(existing, {"id": "b", "createdAt": "now?", "tags": ["z"]}, "NOW")

        assert record == {"id": "a", "createdAt": "then", "updatedAt": "NOW", "tags": ["z"], "name": "Old"}

    def test_update_cannot_add_created_at(self):
        record = merge_for_update({"id": "a"}, {"createdAt": "forged"}, "NOW")
        assert "createdAt" not in record


class TestProjectService:
    """CRUD over projects.json."""

    def test_list_and_filter(self, projects):
        assert len(projects.list()) == 3
        assert [p["id"] for p in projects.list(status="active")] == ["proj1"]

    def test_get_by_id(self, projects):
        assert projects.get_by_id("proj2")["name"] == "Data Warehouse Migration"
        assert projects.get_by_id("nope") is None

    def test_create_gives_fresh_id(self, projects):
        existing = {p["id"] for p in projects.list()}

        created = projects.create({"name": "New", "budget": 10})

        assert created["id"] not in existing
        assert created["createdAt"] == created["updatedAt"]
        assert projects.get_by_id(created["id"]) == created

    @pytest.mark.parametrize("payload", [
        {"name": "Renamed"},
        {"id": "hijack", "createdAt": "1999-01-01T00:00:00.000Z"},
        {"budget": 0, "teamMembers": []},
    ])
    def test_update_preserves_identity(self, projects, payload):
        before = projects.get_by_id("proj1")

        updated = projects.update("proj1", payload)

        assert updated["id"] == before["id"]
        assert updated["createdAt"] == before["createdAt"]
        assert updated["updatedAt"] != before["updatedAt"]
        assert projects.get_by_id("proj1") == updated

    def test_update_missing(self, projects):
        assert projects.update("nope", {"name": "x"}) is None

    @pytest.mark.parametrize("payload", [
        {"endDate": "1990-01-01"},
        {"startDate": "2030-01-01"},
    ])
    def test_update_keeps_dates_ordered(self, projects, payload):
        before = projects.get_by_id("proj1")

        with pytest.raises(InvalidRecord):
            projects.update("proj1", payload)

        assert projects.get_by_id("proj1") == before

    def test_delete_then_get(self, projects):
        assert projects.delete("proj3") is True
        assert projects.get_by_id("proj3") is None
        assert len(projects.list()) == 2

    def test_delete_missing(self, projects):
        assert projects.delete("nope") is False
        assert len(projects.list()) == 3

    def test_total_budget_follows_changes(self, projects, tasks, resources):
        projects.create({"name": "Extra", "budget": 5000})
        projects.update("proj2", {"budget": 200000})
        projects.delete("proj3")

        stats = reports.dashboard_stats(projects.list(), tasks.list(), resources.list())

        assert stats["totalBudget"] == sum(p.get("budget", 0) for p in projects.list())
        assert stats["totalBudget"] == 150000 + 200000 + 5000


class TestTaskService:
    """Task filters and completedDate bookkeeping."""

    def test_filter_by_project(self, tasks):
        assert [t["id"] for t in tasks.list(project_id="proj2")] == ["task4"]
        assert tasks.list(project_id="missing") == []

    def test_create_completed_sets_completed_date(self, tasks):
        done = tasks.create({"title": "Done", "status": "completed", "completedDate": None})
        assert done["completedDate"] == done["createdAt"]

    def test_create_pending_has_no_completed_date(self, tasks):
        todo = tasks.create({"title": "Todo", "status": "pending", "completedDate": "2024-01-01"})
        assert todo["completedDate"] is None

    def test_completion_round_trip(self, tasks):
        completed = tasks.update("task2", {"status": "completed"})
        assert completed["completedDate"] is not None

        reopened = tasks.update("task2", {"status": "pending"})
        assert reopened["completedDate"] is None

    def test_completed_date_kept_while_completed(self, tasks):
        updated = tasks.update("task1", {"title": "Build login page v2", "completedDate": None})
        assert updated["completedDate"] == "2024-02-09T16:00:00.000Z"


class TestUserService:
    """Read-only users and login checks."""

    def test_list_strips_passwords(self, users):
        listed = users.list()
        assert len(listed) == 6
        assert all("password" not in u for u in listed)

    def test_authenticate(self, users):
        user = users.authenticate("admin", "admin123")
        assert user["id"] == "user1"
        assert "password" not in user

    @pytest.mark.parametrize("username,password", [
        ("admin", "wrong"),
        ("Admin", "admin123"),
        ("ghost", "admin123"),
        (None, None),
        ("", ""),
    ])
    def test_authenticate_rejects(self, users, username, password):
        assert users.authenticate(username, password) is None

    def test_display_name(self, users):
        assert users.display_name("user3") == "Daniel Okafor"
        assert users.display_name("missing") == UNKNOWN_USER
        assert users.display_name(None) == UNKNOWN_USER


class TestResourceService:
    """Allocation writes compute derived fields."""

    def test_create_computes_utilization_and_name(self, resources):
        created = resources.create({
            "projectId": "proj2",
            "userId": "user3",
            "allocatedHours": 120,
            "usedHours": 60,
            "hourlyRate": 90,
        })

        assert created["utilizationPercentage"] == 50
        assert created["userName"] == "Daniel Okafor"
        assert "updatedAt" not in created

    def test_zero_allocation(self, resources):
        created = resources.create({"userId": "user4", "allocatedHours": 0, "usedHours": 10})
        assert created["utilizationPercentage"] == 0

    def test_dangling_user(self, resources):
        created = resources.create({"userId": "user99", "allocatedHours": 10, "usedHours": 5})
        assert created["userName"] == UNKNOWN_USER

    def test_update_recomputes_utilization(self, resources):
        updated = resources.update("res1", {"usedHours": 240})

        assert updated["utilizationPercentage"] == 75
        assert updated["userName"] == "Daniel Okafor"
        assert updated["createdAt"] == "2024-01-12T10:00:00.000Z"
        assert "updatedAt" not in updated

    def test_user_name_is_a_write_time_copy(self, resources, database):
        with database.editing("users") as stored:
            stored[2]["fullName"] = "Dan Okafor"

        assert resources.get_by_id("res1")["userName"] == "Daniel Okafor"
        assert resources.update("res1", {"userId": "user3"})["userName"] == "Dan Okafor"

    def test_filters(self, resources):
        assert [r["id"] for r in resources.list(project_id="proj1")] == ["res1", "res2"]
        assert [r["id"] for r in resources.list(user_id="user4")] == ["res2", "res3"]


class TestConcurrentWrites:
    """Writers sharing one store in one process."""

    def test_no_lost_updates(self, database):
        tasks = TaskService(database)
        created = []
        errors = []

        def worker(n):
            try:
                task = tasks.create({"title": f"Parallel {n}", "status": "pending"})
                created.append(task["id"])
                tasks.update(task["id"], {"status": "completed"})
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(30)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        stored = {t["id"]: t for t in tasks.list()}
        assert len(stored) == 4 + 30
        assert all(stored[task_id]["status"] == "completed" for task_id in created)
        assert {"task1", "task2", "task3", "task4"} <= stored.keys()
