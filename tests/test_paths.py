import pytest

from cqroute.core.paths import is_ancestor, derive_event_types, wildcard_path


# ---------------------------------------------------------------------------
# is_ancestor
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("ancestor, path", [
    ("/", "/group/123/message"),
    ("/group", "/group/123/message"),
    ("/group/123/", "/group/123/message/normal"),
    ("/group/*", "/group/123/message"),
    ("/group/*/", "/group/123/"),
    ("/user/*/", "/user/42/friend_add"),
])
def test_is_ancestor_matches(ancestor, path):
    assert is_ancestor(ancestor, path) is True


@pytest.mark.parametrize("ancestor, path", [
    ("/user/*/", "/group/1/message"),
    ("/group/1/", "/group/12/message"),
    ("/group/123/", "/group/456/message"),
    ("/discuss/", "/group/1/message"),
])
def test_is_ancestor_rejects(ancestor, path):
    assert is_ancestor(ancestor, path) is False


def test_is_ancestor_only_wildcards_first_id():
    assert is_ancestor("/group/*/x/", "/group/1/x/2/") is True
    assert is_ancestor("/group/*/x/*/", "/group/1/x/2/") is False


def test_wildcard_path_replaces_first_digit_run():
    assert wildcard_path("/group/123/user/456") == "/group/*/user/456"
    assert wildcard_path("/meta_event/heartbeat") == "/meta_event/heartbeat"


# ---------------------------------------------------------------------------
# derive_event_types
# ---------------------------------------------------------------------------

def test_root_context_drops_leading_entity_segments():
    assert derive_event_types("/", "/group/123/message/normal") == [
        "message",
        "message/normal",
    ]


def test_exact_context_strips_its_prefix():
    assert derive_event_types("/group/123/", "/group/123/message/normal") == [
        "message",
        "message/normal",
    ]


def test_ids_after_event_name_become_wildcards():
    assert derive_event_types("/", "/group/1/message/2/detail") == [
        "message",
        "message/*",
        "message/*/detail",
    ]


def test_prefix_tokens_after_event_name_become_wildcards():
    assert derive_event_types("/", "/user/1/request/group") == [
        "request",
        "request/*",
    ]


def test_meta_event_cascade():
    assert derive_event_types("/", "/meta_event/lifecycle/enable") == [
        "meta_event",
        "meta_event/lifecycle",
        "meta_event/lifecycle/enable",
    ]


def test_empty_segment_counts_as_id():
    assert derive_event_types("/", "/group/1/message/") == ["message", "message/*"]


def test_unrelated_context_yields_nothing():
    assert derive_event_types("/group/1/", "/group/2/message") == []
    assert derive_event_types("/user/", "/group/2/message") == []


def test_wildcard_context_is_literal_for_pure_derivation():
    assert derive_event_types("/group/*/", "/group/1/message") == []
