from __future__ import annotations

import itertools

import pytest

from errors import InvalidStateError
from script_store import ScriptStore


def test_lock_requires_text() -> None:
    store = ScriptStore()
    with pytest.raises(InvalidStateError):
        store.lock()

    store.set_text("   \n\t")
    with pytest.raises(InvalidStateError):
        store.lock()
    assert store.locked is False


def test_second_lock_fails_instead_of_noop() -> None:
    store = ScriptStore("Good morning everyone.")
    store.lock()
    with pytest.raises(InvalidStateError):
        store.lock()
    assert store.locked is True


def test_text_is_frozen_while_locked() -> None:
    store = ScriptStore("draft")
    store.lock()
    with pytest.raises(InvalidStateError):
        store.set_text("edited")
    assert store.text == "draft"

    store.unlock()
    store.set_text("edited")
    assert store.text == "edited"


def test_unlock_is_idempotent_and_notifies_on_change_only() -> None:
    seen: list[bool] = []
    store = ScriptStore("hello")
    store.subscribe(seen.append)

    store.unlock()
    store.lock()
    store.unlock()
    store.unlock()

    assert seen == [True, False]


@pytest.mark.parametrize("ops", list(itertools.product(["lock", "unlock", "clear", "fill"], repeat=4)))
def test_lock_sequences_follow_model(ops: tuple[str, ...]) -> None:
    store = ScriptStore()
    text, locked = "", False
    for op in ops:
        if op == "lock":
            if locked or not text.strip():
                with pytest.raises(InvalidStateError):
                    store.lock()
            else:
                store.lock()
                locked = True
        elif op == "unlock":
            store.unlock()
            locked = False
        else:
            value = "" if op == "clear" else "Thank you for coming today."
            if locked:
                with pytest.raises(InvalidStateError):
                    store.set_text(value)
            else:
                store.set_text(value)
                text = value
        assert store.locked is locked
        assert store.text == text
