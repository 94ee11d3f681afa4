from datetime import datetime, timedelta, timezone

import pytest

from todo_api.errors import Forbidden, InvalidArgument, NotFound, Unauthenticated, ValidationError
from todo_api.repositories import InMemoryTodoRepository
from todo_api.schemas import TodoUpdate
from todo_api.todos import TodoFilters, TodoService

ANN = "aaaaaaaaaaaaaaaaaaaaaaaa"
BOB = "bbbbbbbbbbbbbbbbbbbbbbbb"
MISSING_ID = "0123456789abcdef01234567"


class RivalClaimRepository(InMemoryTodoRepository):
    """After the next read, another user claims the todo before the write lands."""

    def __init__(self, rival: str) -> None:
        super().__init__()
        self.rival = rival
        self.armed = False

    def get(self, todo_id):
        item = super().get(todo_id)
        if self.armed and item is not None:
            self.armed = False
            super().update(todo_id, {"owner_id": self.rival})
        return item


@pytest.fixture
def repo():
    return InMemoryTodoRepository()


@pytest.fixture
def service(repo):
    return TodoService(repo)


def update(**fields) -> TodoUpdate:
    return TodoUpdate(**fields)


class TestCreate:
    def test_owner_follows_requester(self, service):
        assert service.create("mine", requester=ANN)["owner_id"] == ANN
        assert service.create("nobody's")["owner_id"] is None

    def test_defaults(self, service):
        todo = service.create("task", priority="")
        assert todo["completed"] is False
        assert todo["completed_at"] is None
        assert todo["starred"] is False
        assert todo["priority"] is None

    @pytest.mark.parametrize("body", [None, "", "   "])
    def test_empty_body(self, service, body):
        with pytest.raises(ValidationError):
            service.create(body)

    def test_naive_due_date_is_stored_as_utc(self, service):
        todo = service.create("task", due_date=datetime(2099, 1, 1))
        assert todo["due_date"] == datetime(2099, 1, 1, tzinfo=timezone.utc)


class TestList:
    def test_visibility(self, service):
        service.create("ann", requester=ANN)
        service.create("bob", requester=BOB)
        service.create("anon")

        assert {t["body"] for t in service.list(requester=ANN)} == {"ann", "anon"}
        assert {t["body"] for t in service.list(requester=BOB)} == {"bob", "anon"}
        assert [t["body"] for t in service.list()] == ["anon", "bob", "ann"]

    def test_status_filter(self, service):
        done = service.create("done")
        service.create("open")
        service.update(done["id"], update(completed=True))

        assert [t["body"] for t in service.list(TodoFilters(status="completed"))] == ["done"]
        assert [t["body"] for t in service.list(TodoFilters(status="ACTIVE"))] == ["open"]
        assert len(service.list(TodoFilters(status="bogus"))) == 2

    def test_search_is_case_insensitive_pattern(self, service):
        service.create("Buy Milk")
        service.create("buy bread")
        service.create("walk dog")
        assert {t["body"] for t in service.list(TodoFilters(search="^buy"))} == {"Buy Milk", "buy bread"}
        assert [t["body"] for t in service.list(TodoFilters(search="[unclosed"))] == []


class TestUpdate:
    def test_invalid_id(self, service):
        with pytest.raises(InvalidArgument):
            service.update("xyz", update(body="x"))

    def test_missing_todo(self, service):
        with pytest.raises(NotFound):
            service.update(MISSING_ID, update(body="x"))

    def test_fields_are_set_and_updated_at_refreshed(self, service, repo):
        todo = service.create("old")
        service.update(todo["id"], update(body="new", priority="low"))
        stored = repo.get(todo["id"])
        assert stored["body"] == "new"
        assert stored["priority"] == "low"
        assert stored["completed"] is False
        assert stored["updated_at"] >= todo["updated_at"]

    def test_explicit_completion(self, service, repo):
        todo = service.create("task")
        service.update(todo["id"], update(completed=True))
        assert repo.get(todo["id"])["completed_at"] is not None
        service.update(todo["id"], update(completed=True))
        assert repo.get(todo["id"])["completed"] is True
        service.update(todo["id"], update(completed=False))
        assert repo.get(todo["id"])["completed_at"] is None

    def test_empty_update_toggles(self, service, repo):
        todo = service.create("task")
        service.update(todo["id"], update())
        stored = repo.get(todo["id"])
        assert stored["completed"] is True
        assert stored["completed_at"] is not None

        service.update(todo["id"], update())
        stored = repo.get(todo["id"])
        assert stored["completed"] is False
        assert stored["completed_at"] is None

    def test_due_date_in_the_past(self, service):
        todo = service.create("task")
        yesterday = datetime.now(timezone.utc) - timedelta(days=1)
        with pytest.raises(ValidationError):
            service.update(todo["id"], update(due_date=yesterday))

    def test_due_date_today_ignores_time_of_day(self, service, repo):
        todo = service.create("task")
        today_midnight = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        service.update(todo["id"], update(due_date=today_midnight))
        assert repo.get(todo["id"])["due_date"] == today_midnight

    def test_due_date_can_be_cleared(self, service, repo):
        todo = service.create("task", due_date=datetime(2099, 1, 1, tzinfo=timezone.utc))
        service.update(todo["id"], update(due_date=None))
        stored = repo.get(todo["id"])
        assert stored["due_date"] is None
        assert stored["completed"] is False

    def test_star_requires_requester(self, service):
        todo = service.create("task")
        with pytest.raises(Unauthenticated):
            service.update(todo["id"], update(starred=True))

    def test_star_claims_unowned(self, service, repo):
        todo = service.create("task")
        service.update(todo["id"], update(starred=True, body="claimed"), requester=ANN)
        stored = repo.get(todo["id"])
        assert stored["owner_id"] == ANN
        assert stored["starred"] is True
        assert stored["body"] == "claimed"

    def test_star_by_other_user_forbidden(self, service, repo):
        todo = service.create("task")
        service.update(todo["id"], update(starred=True), requester=ANN)
        with pytest.raises(Forbidden):
            service.update(todo["id"], update(starred=False, body="hijack"), requester=BOB)
        stored = repo.get(todo["id"])
        assert stored["owner_id"] == ANN
        assert stored["starred"] is True
        assert stored["body"] == "task"

    def test_owner_can_unstar(self, service, repo):
        todo = service.create("task", starred=True, requester=ANN)
        service.update(todo["id"], update(starred=False), requester=ANN)
        assert repo.get(todo["id"])["starred"] is False


class TestSetStarred:
    def test_requires_requester(self, service):
        todo = service.create("task")
        with pytest.raises(Unauthenticated):
            service.set_starred(todo["id"], True, None)

    def test_claim_then_forbid(self, service, repo):
        todo = service.create("task")
        service.set_starred(todo["id"], True, ANN)
        assert repo.get(todo["id"])["owner_id"] == ANN
        with pytest.raises(Forbidden):
            service.set_starred(todo["id"], True, BOB)

    def test_missing(self, service):
        with pytest.raises(NotFound):
            service.set_starred(MISSING_ID, True, ANN)

    def test_lost_claim_race_is_forbidden(self):
        repo = RivalClaimRepository(rival=BOB)
        service = TodoService(repo)
        todo = service.create("contested")

        repo.armed = True
        with pytest.raises(Forbidden):
            service.set_starred(todo["id"], True, ANN)

        stored = repo.get(todo["id"])
        assert stored["owner_id"] == BOB
        assert stored["starred"] is False

    def test_race_against_own_claim_succeeds(self):
        repo = RivalClaimRepository(rival=ANN)
        service = TodoService(repo)
        todo = service.create("contested")

        repo.armed = True
        service.set_starred(todo["id"], True, ANN)
        stored = repo.get(todo["id"])
        assert stored["owner_id"] == ANN
        assert stored["starred"] is True


class TestDelete:
    def test_unowned_by_anyone(self, service, repo):
        todo = service.create("task")
        service.delete(todo["id"])
        assert repo.get(todo["id"]) is None

    def test_owned_by_owner_only(self, service, repo):
        todo = service.create("task", requester=ANN)
        with pytest.raises(Forbidden):
            service.delete(todo["id"], requester=BOB)
        with pytest.raises(Forbidden):
            service.delete(todo["id"])
        service.delete(todo["id"], requester=ANN)
        assert repo.get(todo["id"]) is None

    def test_missing_and_invalid(self, service):
        with pytest.raises(NotFound):
            service.delete(MISSING_ID)
        with pytest.raises(InvalidArgument):
            service.delete("nope")
