"""
Unit tests for the user and book stores.
Tests registration, tenant bootstrap, credentials and book CRUD.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest
from pydantic import ValidationError

from catalog.errors import ConflictError, NotFoundError, UnauthenticatedError, UnknownUserError
from catalog.models import Book, BookCreate, BookPatch, apply_patch
from catalog.users import hash_password, verify_password


class TestPasswords:
    """Test cases for password digests."""

    def test_digest_verifies(self):
        digest = hash_password("pw1")

        assert verify_password("pw1", digest)
        assert not verify_password("pw2", digest)

    def test_digest_is_salted(self):
        assert hash_password("pw1") != hash_password("pw1")

    def test_malformed_digest_never_matches(self):
        assert not verify_password("pw1", "no-separator")


class TestUserStore:
    """Test cases for registration and authentication."""

    def test_register_creates_tenant_collection_and_bucket(self, store):
        store.users.register("bob", hash_password("pw1"), "t1")

        assert store.users.exists("bob")
        assert store.books.has_collection("t1")
        assert store.books.list_books("t1") == []
        assert store.sessions.list_sessions("bob") == {}

    def test_duplicate_username_conflicts(self, store):
        store.users.register("bob", hash_password("pw1"), "t1")

        with pytest.raises(ConflictError):
            store.users.register("bob", hash_password("other"), "t2")

        assert store.users.get_customer("bob") == "t1"
        assert not store.books.has_collection("t2")

    def test_tenant_collection_created_once(self, store):
        store.users.register("bob", hash_password("pw1"), "t1")
        book = store.books.add_book("t1", BookCreate(name="Dune", author="Herbert"))

        store.users.register("carol", hash_password("pw2"), "t1")

        assert store.books.list_books("t1") == [book]
        assert store.books.create_collection("t1") is False
        assert store.books.tenants() == ["t1"]

    def test_authenticate(self, store):
        store.users.register("bob", hash_password("pw1"), "t1")

        assert store.users.authenticate("bob", "pw1").customer == "t1"
        assert store.users.authenticate("bob", "wrong") is None
        assert store.users.authenticate("nobody", "pw1") is None

    def test_get_customer_of_unknown_user(self, store):
        with pytest.raises(UnknownUserError):
            store.users.get_customer("nobody")

    def test_list_users(self, store):
        store.users.register("bob", hash_password("pw1"), "t1")
        store.users.register("carol", hash_password("pw2"), "t2")

        assert [(u.username, u.customer) for u in store.users.list_users()] == [
            ("bob", "t1"),
            ("carol", "t2"),
        ]

    def test_concurrent_registration_single_winner(self, store):
        """Test that racing registrations of one username admit exactly one."""

        def attempt(_):
            try:
                store.users.register("racer", "salt:digest", "t1")
                return True
            except ConflictError:
                return False

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, range(32)))

        assert results.count(True) == 1
        assert len(store.users.list_users()) == 1


class TestCatalogStoreSessions:
    """Test cases for login, renewal and the live session view."""

    def test_login_records_live_session(self, store):
        store.users.register("bob", hash_password("pw1"), "t1")

        issued = store.login("bob", "pw1")

        assert issued.username == "bob"
        assert issued.customer == "t1"
        assert store.sessions.is_live("bob", issued.token)

    def test_login_with_bad_password(self, store):
        store.users.register("bob", hash_password("pw1"), "t1")

        with pytest.raises(UnauthenticatedError):
            store.login("bob", "nope")

    def test_renew_adds_second_session(self, store):
        store.users.register("bob", hash_password("pw1"), "t1")
        first = store.login("bob", "pw1")
        identity = store.codec.verify(first.token).claims.identity

        renewed = store.renew(identity)

        assert renewed.token != first.token
        assert set(store.live_sessions("bob")) == {first.token, renewed.token}

    def test_live_sessions_sweeps_expired(self, store, expired_codec):
        store.users.register("bob", hash_password("pw1"), "t1")
        live = store.login("bob", "pw1").token
        stale = expired_codec.issue("bob", "t1")
        store.sessions.record("bob", stale)

        assert list(store.live_sessions("bob")) == [live]


class TestBookModels:
    """Test cases for the patch overlay."""

    def test_apply_patch_overlays_set_fields(self):
        book = Book(id="b1", name="Dune", author="Herbert")

        updated = apply_patch(book, BookPatch(name="Dune Messiah"))

        assert updated.name == "Dune Messiah"
        assert updated.author == "Herbert"
        assert book.name == "Dune"

    def test_apply_patch_merges_extra_fields(self):
        book = Book(id="b1", name="Dune", author="Herbert")

        updated = apply_patch(book, BookPatch(year=1965))
        updated = apply_patch(updated, BookPatch(pages=412))

        dumped = updated.model_dump()
        assert dumped["year"] == 1965
        assert dumped["pages"] == 412
        assert dumped["name"] == "Dune"

    def test_apply_patch_keeps_id(self):
        book = Book(id="b1", name="Dune", author="Herbert")

        assert apply_patch(book, BookPatch(id="other")).id == "b1"

    def test_patch_changes_only_explicit_fields(self):
        assert BookPatch(author="Frank Herbert").changes() == {"author": "Frank Herbert"}

    @pytest.mark.parametrize("value", ["", None])
    def test_patch_rejects_empty_required_fields(self, value):
        with pytest.raises(ValidationError):
            BookPatch(name=value)

    def test_create_requires_name_and_author(self):
        with pytest.raises(ValidationError):
            BookCreate(name="", author="Herbert")
        with pytest.raises(ValidationError):
            BookCreate(name="Dune")


class TestBookStore:
    """Test cases for per-tenant book CRUD."""

    def test_add_and_get(self, store):
        store.books.create_collection("t1")

        book = store.books.add_book("t1", BookCreate(name="Dune", author="Herbert"))

        assert book.id
        assert store.books.get_book("t1", book.id) == book
        assert store.books.list_books("t1") == [book]

    def test_books_are_isolated_per_tenant(self, store):
        book = store.books.add_book("t1", BookCreate(name="Dune", author="Herbert"))

        with pytest.raises(NotFoundError):
            store.books.get_book("t2", book.id)
        assert store.books.list_books("t2") == []

    def test_update_book(self, store):
        book = store.books.add_book("t1", BookCreate(name="Dune", author="Herbert"))

        updated = store.books.update_book("t1", book.id, BookPatch(author="Frank Herbert"))

        assert updated.id == book.id
        assert updated.author == "Frank Herbert"
        assert store.books.get_book("t1", book.id) == updated

    def test_update_missing_book(self, store):
        store.books.create_collection("t1")

        with pytest.raises(NotFoundError):
            store.books.update_book("t1", "missing", BookPatch(name="x"))

    def test_delete_book_twice(self, store):
        book = store.books.add_book("t1", BookCreate(name="Dune", author="Herbert"))

        store.books.delete_book("t1", book.id)

        with pytest.raises(NotFoundError):
            store.books.delete_book("t1", book.id)
        assert store.books.list_books("t1") == []
