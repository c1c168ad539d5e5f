import pytest

from docpreview.utils.identifiers import (
    is_safe_id,
    normalize_document_id,
    normalize_namespace,
    unclaimed_user_id_for_namespace,
)


@pytest.mark.parametrize("value", ["doc1", "a.b-c_d", "A" * 128, "0" * 64])
def test_safe_ids_accepted(value):
    assert is_safe_id(value)


@pytest.mark.parametrize(
    "value",
    ["", ".", "..", "a..b", "../etc", "a/b", "a\\b", "a b", "x" * 129, None, 42],
)
def test_unsafe_ids_rejected(value):
    assert not is_safe_id(value)


def test_normalize_document_id_trims_and_lowercases():
    assert normalize_document_id("  Doc1 ") == "doc1"


def test_normalize_document_id_rejects_traversal():
    assert normalize_document_id("../secret") is None
    assert normalize_document_id(None) is None


def test_normalize_namespace_strips_unsafe_characters():
    assert normalize_namespace("run/42 a") == "run42a"
    assert normalize_namespace("x" * 100) == "x" * 64


@pytest.mark.parametrize("raw", [None, "", "//", "..", "a..b"])
def test_normalize_namespace_disables_unsafe_values(raw):
    assert normalize_namespace(raw) is None


def test_unclaimed_user_id_depends_on_namespace():
    assert unclaimed_user_id_for_namespace(None) == "unclaimed"
    assert unclaimed_user_id_for_namespace("ns1") == "unclaimed-ns1"
