"""Tests for ScopedSession."""

from mixsurface.session import ScopedSession


def test_close_disposes_in_order_once():
    disposed = []
    session = ScopedSession()
    session.own("a", lambda: disposed.append("a"))
    session.own("b", lambda: disposed.append("b"))
    assert len(session) == 2
    session.close()
    session.close()
    assert disposed == ["a", "b"]
    assert session.closed
    assert len(session) == 0


def test_failing_disposer_does_not_skip_the_rest(caplog):
    disposed = []

    def broken():
        raise OSError("already gone")

    session = ScopedSession()
    session.own("subscription", broken)
    session.own("timer", lambda: disposed.append("timer"))
    session.close()
    assert disposed == ["timer"]
    assert "Error disposing subscription" in caplog.text


def test_own_after_close_disposes_immediately():
    disposed = []
    session = ScopedSession()
    session.close()
    session.own("late", lambda: disposed.append("late"))
    assert disposed == ["late"]
    assert len(session) == 0
