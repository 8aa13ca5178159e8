from __future__ import annotations

from mod_intake.app.invalidation import InvalidationDispatcher
from mod_intake.app.models import MUTATION_RESOURCES, ResourceId


def test_dispatch_dedupes_and_filters():
    dispatcher = InvalidationDispatcher()
    everything, folders_only = [], []
    dispatcher.subscribe(everything.append)
    dispatcher.subscribe(folders_only.append, [ResourceId.MOD_FOLDERS])

    sent = dispatcher.dispatch([ResourceId.OBJECTS, ResourceId.MOD_FOLDERS, ResourceId.OBJECTS])

    assert sent == (ResourceId.OBJECTS, ResourceId.MOD_FOLDERS)
    assert everything == [sent]
    assert folders_only == [(ResourceId.MOD_FOLDERS,)]
    assert dispatcher.history == [sent]


def test_unsubscribe_and_failing_listener():
    dispatcher = InvalidationDispatcher()
    received = []

    def broken(_resources):
        raise RuntimeError("stale cache")

    dispatcher.subscribe(broken)
    unsubscribe = dispatcher.subscribe(received.append)
    dispatcher.dispatch(MUTATION_RESOURCES)
    unsubscribe()
    dispatcher.dispatch(MUTATION_RESOURCES)

    assert received == [MUTATION_RESOURCES]


def test_empty_dispatch_is_a_no_op():
    dispatcher = InvalidationDispatcher()
    assert dispatcher.dispatch([]) == ()
    assert dispatcher.history == []


def test_string_ids_are_accepted():
    dispatcher = InvalidationDispatcher()
    assert dispatcher.dispatch(["conflicts"]) == (ResourceId.CONFLICTS,)
