import threading

from arikedb.rpc.session_state import (
    AUTHORIZATION_KEY,
    REFRESH_TOKEN_KEY,
    SessionState,
)


def test_initial_state_has_no_token() -> None:
    session = SessionState()
    assert session.token is None
    assert not session.is_authenticated


def test_stamp_without_token_is_noop() -> None:
    session = SessionState()
    assert session.stamp() == []
    assert session.stamp([("x-request-id", "1")]) == [("x-request-id", "1")]


def test_stamp_with_token_adds_authorization() -> None:
    session = SessionState("abc")
    assert session.stamp() == [(AUTHORIZATION_KEY, "abc")]


def test_stamp_replaces_existing_authorization() -> None:
    session = SessionState("new")
    stamped = session.stamp([(AUTHORIZATION_KEY, "old"), ("other", "1")])
    assert stamped == [("other", "1"), (AUTHORIZATION_KEY, "new")]


def test_stamp_does_not_mutate_input() -> None:
    session = SessionState("abc")
    metadata = [("other", "1")]
    session.stamp(metadata)
    assert metadata == [("other", "1")]


def test_absorb_replaces_token() -> None:
    session = SessionState("old")
    assert session.absorb([(REFRESH_TOKEN_KEY, "new")]) is True
    assert session.token == "new"
    assert session.stamp() == [(AUTHORIZATION_KEY, "new")]


def test_absorb_without_refresh_keeps_token() -> None:
    session = SessionState("old")
    assert session.absorb([("something", "else")], None) is False
    assert session.token == "old"


def test_absorb_can_authenticate_from_nothing() -> None:
    session = SessionState()
    session.absorb([(REFRESH_TOKEN_KEY, "t1")])
    assert session.is_authenticated


def test_absorb_trailers_win_over_headers() -> None:
    session = SessionState("old")
    session.absorb(
        [(REFRESH_TOKEN_KEY, "from-headers")],
        [(REFRESH_TOKEN_KEY, "from-trailers")],
    )
    assert session.token == "from-trailers"


def test_absorb_decodes_bytes_values() -> None:
    session = SessionState()
    session.absorb([(REFRESH_TOKEN_KEY, b"bytes-token")])
    assert session.token == "bytes-token"


def test_set_token_and_clear() -> None:
    session = SessionState()
    session.set_token("t")
    assert session.token == "t"
    session.clear()
    assert session.token is None
    assert session.stamp() == []


def test_concurrent_writers_leave_one_of_the_written_tokens() -> None:
    session = SessionState()
    written = [f"token-{i}" for i in range(10)]

    def writer(token: str) -> None:
        for _ in range(100):
            session.absorb([(REFRESH_TOKEN_KEY, token)])

    threads = [threading.Thread(target=writer, args=(t,)) for t in written]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert session.token in written
