import pytest

from markovkmc.mru import MRU, Transaction


def test_touch_orders_oldest_first():
    mru = MRU()
    for item in [(1, 10), (2, 20), (3, 30)]:
        mru.touch(item)
    assert list(mru) == [(1, 10), (2, 20), (3, 30)]
    assert mru.oldest() == (1, 10)


def test_retouch_moves_to_back():
    mru = MRU()
    for item in ["a", "b", "c"]:
        mru.touch(item)
    mru.touch("a")
    assert list(mru) == ["b", "c", "a"]
    assert len(mru) == 3


def test_erase_removes_and_ignores_missing():
    mru = MRU()
    mru.touch("a")
    mru.touch("b")
    mru.erase("a")
    mru.erase("zzz")
    assert list(mru) == ["b"]
    assert "a" not in mru


def test_pop_oldest():
    mru = MRU()
    mru.touch(1)
    mru.touch(2)
    assert mru.pop_oldest() is True
    assert list(mru) == [2]
    assert mru.pop_oldest() is True
    assert mru.pop_oldest() is False
    assert len(mru) == 0


def test_oldest_on_empty_is_none():
    assert MRU().oldest() is None


@pytest.mark.parametrize("pending,flag", [(False, "0"), (True, "1")])
def test_transaction_describe(pending, flag):
    t = Transaction(kind=1, db_key=2, key=3, data=b"x", source=4, destination=5, pending=pending)
    text = t.describe()
    assert text.startswith(" type: 1 dbKey: 2 key: 3")
    assert text.endswith(f"pending: {flag}")
    assert "source: 4 destination: 5" in text