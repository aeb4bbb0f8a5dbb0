"""Tests for the participant directory."""

from uuid import uuid4

from sqlalchemy.orm import Session

from hundrednet.services import directory
from tests.factories import create_test_profile


class TestDisplayNames:
    """Tests for display-name helpers."""

    def test_full_name_joins_parts(self):
        assert directory.full_name("Ada", "Lovelace") == "Ada Lovelace"

    def test_full_name_with_one_part(self):
        assert directory.full_name("Ada", None) == "Ada"
        assert directory.full_name(None, "Lovelace") == "Lovelace"

    def test_full_name_falls_back(self):
        """Blank names render as the generic display name."""
        assert directory.full_name(None, None) == directory.DEFAULT_DISPLAY_NAME
        assert directory.full_name("  ", "") == directory.DEFAULT_DISPLAY_NAME

    def test_unknown_user(self):
        """Ids without a profile render as the unknown-user placeholder."""
        user_id = uuid4()

        out = directory.unknown_user(user_id)

        assert out.id == user_id
        assert out.full_name == directory.UNKNOWN_USER_NAME
        assert out.avatar_url is None


class TestLookupUsers:
    """Tests for batched lookups."""

    def test_resolves_known_ids_only(self, db_session: Session):
        """Known ids map to display records; unknown ids are absent."""
        ada = create_test_profile(db_session, "Ada", "Lovelace", "https://img/ada.png")
        missing = uuid4()

        users = directory.lookup_users(db_session, [ada, missing])

        assert set(users) == {ada}
        assert users[ada].full_name == "Ada Lovelace"
        assert users[ada].avatar_url == "https://img/ada.png"

    def test_empty_input(self, db_session: Session):
        assert directory.lookup_users(db_session, []) == {}

    def test_missing_users(self, db_session: Session):
        ada = create_test_profile(db_session)
        missing = uuid4()

        assert directory.missing_users(db_session, [ada, missing]) == {missing}


class TestSearchUsers:
    """Tests for search_users."""

    def test_matches_first_last_and_full_name(self, db_session: Session):
        """First name, last name and "first last" all match, case-insensitively."""
        viewer = create_test_profile(db_session, "Viewer", "Person")
        ada = create_test_profile(db_session, "Ada", "Lovelace")
        create_test_profile(db_session, "Grace", "Hopper")

        assert [u.id for u in directory.search_users(db_session, viewer, "ADA")] == [ada]
        assert [u.id for u in directory.search_users(db_session, viewer, "love")] == [ada]
        assert [u.id for u in directory.search_users(db_session, viewer, "a lov")] == [ada]

    def test_excludes_viewer(self, db_session: Session):
        """The searching user never appears in their own results."""
        viewer = create_test_profile(db_session, "Sam", "Smith")
        other = create_test_profile(db_session, "Sam", "Jones")

        results = directory.search_users(db_session, viewer, "sam")

        assert [u.id for u in results] == [other]

    def test_blank_query_returns_nothing(self, db_session: Session):
        viewer = create_test_profile(db_session)
        create_test_profile(db_session, "Ada", "Lovelace")

        assert directory.search_users(db_session, viewer, "   ") == []

    def test_wildcards_are_literal(self, db_session: Session):
        """LIKE wildcards in the query match literally."""
        viewer = create_test_profile(db_session)
        create_test_profile(db_session, "Ada", "Lovelace")

        assert directory.search_users(db_session, viewer, "%") == []
        assert directory.search_users(db_session, viewer, "_") == []

    def test_result_limit(self, db_session: Session):
        """At most SEARCH_RESULT_LIMIT users are returned."""
        viewer = create_test_profile(db_session, "Viewer", "X")
        for i in range(directory.SEARCH_RESULT_LIMIT + 3):
            create_test_profile(db_session, "Match", f"Number{i:02d}")

        results = directory.search_users(db_session, viewer, "match")

        assert len(results) == directory.SEARCH_RESULT_LIMIT
