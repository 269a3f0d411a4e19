"""
Unit tests for UserService
"""
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import IntegrityError

from backend.core.errors import ConflictError, NotFoundError, ValidationError
from backend.core.users.service import MAX_PAGE, normalize_pagination


class TestCreateUser:
    def test_create_normalizes_email(self, user_service):
        user = user_service.create_user("  Alice@Example.COM ", "  Alice  ", "g-1", "https://img/a")

        assert user.id is not None
        assert user.email == "alice@example.com"
        assert user.name == "Alice"
        assert user.is_active is True

    @pytest.mark.parametrize("email", ["", "not-an-email", "a@b", "@example.com"])
    def test_invalid_email(self, user_service, email):
        with pytest.raises(ValidationError):
            user_service.create_user(email, "Name")

    def test_blank_name(self, user_service):
        with pytest.raises(ValidationError):
            user_service.create_user("alice@example.com", "   ")

    def test_duplicate_email_conflicts(self, user_service):
        user_service.create_user("alice@example.com", "Alice")

        with pytest.raises(ConflictError) as exc_info:
            user_service.create_user("ALICE@example.com", "Alice Again")
        assert exc_info.value.status_code == 409


class TestGetOrCreateUser:
    def test_first_login_creates_active_account(self, user_service, repository):
        user = user_service.get_or_create_user("alice@example.com", "Alice", "g-1", "https://img/a")

        assert user.is_active is True
        assert user.federated_id == "g-1"
        assert repository.count() == 1

    def test_idempotent(self, user_service, repository):
        first = user_service.get_or_create_user("alice@example.com", "Alice", "g-1")
        second = user_service.get_or_create_user("alice@example.com", "Alice", "g-1")

        assert first.id == second.id
        assert repository.count() == 1

    def test_matches_by_federated_id(self, user_service, repository):
        first = user_service.get_or_create_user("alice@example.com", "Alice", "g-1")
        second = user_service.get_or_create_user("alice.new@example.com", "Alice", "g-1")

        assert second.id == first.id
        assert repository.count() == 1

    def test_links_google_id_to_existing_account(self, user_service, make_user):
        existing = make_user(email="alice@example.com", federated_id=None)

        user = user_service.get_or_create_user("alice@example.com", "Alice", "g-1")

        assert user.id == existing.id
        assert user.federated_id == "g-1"

    def test_google_id_match_wins_over_email_match(self, user_service, make_user, repository):
        make_user(email="alice@example.com", federated_id=None)
        holder = make_user(email="old@example.com", federated_id="g-1")

        user = user_service.get_or_create_user("alice@example.com", "Alice", "g-1")

        assert user.id == holder.id
        assert repository.get_by_email("alice@example.com").federated_id is None
        assert repository.count() == 2

    def test_link_race_is_conflict(self, user_service, make_user):
        make_user(email="alice@example.com", federated_id=None)
        user_service.repository.update_fields = Mock(side_effect=IntegrityError("UPDATE", {}, Exception("unique")))

        with pytest.raises(ConflictError) as exc_info:
            user_service.get_or_create_user("alice@example.com", "Alice", "g-1")
        assert exc_info.value.status_code == 409

    def test_blank_name_falls_back_to_email(self, user_service):
        user = user_service.get_or_create_user("alice@example.com", "", "g-1")

        assert user.name == "alice@example.com"

    def test_deleted_account_not_reused(self, user_service, repository):
        first = user_service.get_or_create_user("alice@example.com", "Alice", "g-1")
        user_service.delete_user(first.id)

        second = user_service.get_or_create_user("alice@example.com", "Alice", "g-1")

        assert second.id != first.id
        assert repository.count() == 1


class TestLookups:
    def test_get_by_id(self, user_service, make_user):
        user = make_user()

        assert user_service.get_user_by_id(user.id).email == user.email

    def test_get_by_id_not_found(self, user_service):
        with pytest.raises(NotFoundError):
            user_service.get_user_by_id(999)

    @pytest.mark.parametrize("user_id", [0, -1])
    def test_invalid_id(self, user_service, user_id):
        with pytest.raises(ValidationError):
            user_service.get_user_by_id(user_id)

    def test_get_by_email_case_insensitive(self, user_service, make_user):
        user = make_user(email="bob@example.com")

        assert user_service.get_user_by_email(" BOB@example.com").id == user.id

    def test_get_by_email_not_found(self, user_service):
        with pytest.raises(NotFoundError):
            user_service.get_user_by_email("nobody@example.com")

    def test_is_user_active(self, user_service, make_user):
        active = make_user(email="a@example.com")
        inactive = make_user(email="b@example.com", is_active=False)

        assert user_service.is_user_active(active.id) is True
        assert user_service.is_user_active(inactive.id) is False


class TestPagination:
    def test_25_users_page_1_limit_10(self, user_service, make_user):
        for i in range(25):
            make_user(email=f"user{i}@example.com", name=f"User {i}")

        page = user_service.get_all_users(1, 10)

        assert len(page.users) == 10
        assert page.total == 25
        assert page.total_pages == 3

    def test_last_page_partial(self, user_service, make_user):
        for i in range(25):
            make_user(email=f"user{i}@example.com", name=f"User {i}")

        page = user_service.get_all_users(3, 10)

        assert len(page.users) == 5

    def test_newest_first(self, user_service, make_user):
        make_user(email="old@example.com")
        newest = make_user(email="new@example.com")

        assert user_service.get_all_users().users[0].id == newest.id

    @pytest.mark.parametrize("page,limit,expected", [
        (None, None, (1, 10)),
        (0, 0, (1, 10)),
        (-3, -5, (1, 10)),
        (2, 500, (2, 100)),
        (4, 25, (4, 25)),
    ])
    def test_normalize_pagination(self, page, limit, expected):
        assert normalize_pagination(page, limit) == expected

    def test_page_beyond_max_rejected(self):
        assert normalize_pagination(MAX_PAGE, 10) == (MAX_PAGE, 10)

        with pytest.raises(ValidationError):
            normalize_pagination(MAX_PAGE + 1, 10)

    def test_empty_store(self, user_service):
        page = user_service.get_all_users()

        assert page.users == []
        assert page.total == 0
        assert page.total_pages == 0


class TestSearch:
    def test_search_name_and_email(self, user_service, make_user):
        make_user(email="alice@example.com", name="Alice Smith")
        make_user(email="bob@smith.org", name="Bob")
        make_user(email="carol@example.com", name="Carol")

        page = user_service.search_users("SMITH")

        assert page.total == 2
        assert {u.email for u in page.users} == {"alice@example.com", "bob@smith.org"}

    @pytest.mark.parametrize("keyword", [None, "", "   "])
    def test_blank_keyword(self, user_service, keyword):
        with pytest.raises(ValidationError):
            user_service.search_users(keyword)


class TestUpdates:
    def test_update_profile(self, user_service, make_user):
        user = make_user()

        updated = user_service.update_user_profile(user.id, "  New Name ", "https://img/new")

        assert updated.name == "New Name"
        assert updated.avatar_url == "https://img/new"

    def test_update_profile_requires_name(self, user_service, make_user):
        user = make_user()

        with pytest.raises(ValidationError):
            user_service.update_user_profile(user.id, "  ")

    def test_update_missing_user(self, user_service):
        with pytest.raises(NotFoundError):
            user_service.update_user_profile(42, "Name")

    def test_activate_deactivate(self, user_service, make_user):
        user = make_user()

        user_service.deactivate_user(user.id)
        assert user_service.is_user_active(user.id) is False

        user_service.activate_user(user.id)
        assert user_service.is_user_active(user.id) is True

    def test_status_change_missing_user(self, user_service):
        with pytest.raises(NotFoundError):
            user_service.deactivate_user(42)

    def test_delete_hides_user(self, user_service, make_user):
        user = make_user()

        user_service.delete_user(user.id)

        with pytest.raises(NotFoundError):
            user_service.get_user_by_id(user.id)
        with pytest.raises(NotFoundError):
            user_service.delete_user(user.id)


def test_user_stats(user_service, make_user):
    make_user(email="a@example.com")
    make_user(email="b@example.com")
    make_user(email="c@example.com", is_active=False)

    stats = user_service.get_user_stats()

    assert (stats.total_users, stats.active_users, stats.inactive_users) == (3, 2, 1)


def test_get_active_users(user_service, make_user):
    make_user(email="a@example.com")
    make_user(email="b@example.com", is_active=False)

    assert [u.email for u in user_service.get_active_users()] == ["a@example.com"]


@pytest.mark.parametrize("email,valid", [
    ("alice@example.com", True),
    ("first.last+tag@sub.example.co", True),
    ("alice@example", False),
    ("alice example.com", False),
    ("", False),
])
def test_is_valid_email(user_service, email, valid):
    assert user_service.is_valid_email(email) is valid
