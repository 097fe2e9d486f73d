"""
Idempotency Conformance Tests

INVARIANT: A request settles at most once.

Re-accepting an ACCEPTED request raises NotPending and moves nothing.
When several callers accept the same request at the same time, exactly one
gets a Settlement and every other gets NotPending.
"""

import threading

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from cardledger import ExchangeBook, Card, NotPending, complete_exchange

from tests.helpers import START, book_state, make_request


def _book_with_request(price: int = 100, balance: int = 1000):
    book = ExchangeBook("race", START, verbose=False)
    book.register_user("alice")
    book.register_user("bob")
    book.grant_coins("alice", balance)
    book.register_card(Card("card_1", "bob", price))
    request = book.request_exchange("alice", "card_1")
    return book, request


class TestReaccept:
    """Sequential duplicate accepts."""

    def test_pure_reaccept_raises(self):
        s = complete_exchange(make_request(), 500, 0, "bob")
        with pytest.raises(NotPending):
            complete_exchange(s.request, s.requester_balance, s.owner_balance, "bob")

    @given(repeats=st.integers(min_value=1, max_value=5))
    @settings(max_examples=20, deadline=None)
    def test_book_reaccept_moves_nothing(self, repeats):
        book, request = _book_with_request()
        book.accept(request.id, "bob")
        after_first = book_state(book)
        for _ in range(repeats):
            with pytest.raises(NotPending):
                book.accept(request.id, "bob")
        assert book_state(book) == after_first
        assert book.get_balance("alice") == 900


class TestConcurrentAccept:
    """Racing accepts of one request."""

    @pytest.mark.parametrize("n_threads", [2, 8])
    def test_exactly_one_success(self, n_threads):
        book, request = _book_with_request(price=100, balance=1000)
        barrier = threading.Barrier(n_threads)
        settlements = []
        errors = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            try:
                s = book.accept(request.id, "bob")
                with lock:
                    settlements.append(s)
            except NotPending as e:
                with lock:
                    errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(n_threads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(settlements) == 1
        assert len(errors) == n_threads - 1
        assert book.get_balance("alice") == 900
        assert book.get_balance("bob") == 100
        assert len(book.exchange_records) == 1
        assert book.verify_conservation()['valid']

    def test_accept_races_cancel(self):
        """Accept and cancel racing: exactly one wins, and the outcome is consistent."""
        book, request = _book_with_request(price=100, balance=1000)
        barrier = threading.Barrier(2)
        outcomes = {}

        def accept():
            barrier.wait()
            try:
                book.accept(request.id, "bob")
                outcomes["accept"] = True
            except NotPending:
                outcomes["accept"] = False

        def cancel():
            barrier.wait()
            try:
                book.cancel(request.id, "alice")
                outcomes["cancel"] = True
            except NotPending:
                outcomes["cancel"] = False

        threads = [threading.Thread(target=accept), threading.Thread(target=cancel)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes["accept"] != outcomes["cancel"]
        final = book.get_request(request.id)
        if outcomes["accept"]:
            assert final.status.value == "accepted"
            assert book.get_balance("alice") == 900
        else:
            assert final.status.value == "cancelled"
            assert book.get_balance("alice") == 1000
