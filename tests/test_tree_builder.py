"""Tests for TreeBuilder: merge, shadows, structural conflicts, determinism."""

from __future__ import annotations

import random

from localetree.core.errors import KeypathFormatError, StructuralConflictWarning
from localetree.services.tree_builder import TreeBuilder, build_tree
from tests.factories import make_file


def test_nested_files_merge_into_one_node():
    en = make_file("en.json", "en", {"a": {"b": "hi"}})
    fr = make_file("fr.json", "fr", {"a": {"b": ""}})
    result = build_tree([en, fr])
    assert list(result.flatten) == ["a.b"]
    node = result.flatten["a.b"]
    assert set(node.locales) == {"en", "fr"}
    assert node.get_value("en") == "hi"
    assert node.get_value("fr", "fallback") == "fallback"
    assert node.locales["fr"].shadow is False
    assert result.locales == ("en", "fr")


def test_tree_shape_mirrors_flatten():
    en = make_file("en.json", "en", {"menu": {"file": {"save": "Save", "open": "Open"}, "quit": "Quit"}})
    result = build_tree([en])
    tree = result.tree
    assert tree.type == "tree" and tree.keypath == ""
    menu = tree.children["menu"]
    assert menu.type == "tree" and menu.keypath == "menu"
    file_ = menu.children["file"]
    assert file_.type == "tree" and file_.keypath == "menu.file" and file_.keyname == "file"
    save = file_.children["save"]
    assert save.type == "node" and save.keypath == "menu.file.save"
    assert save is result.flatten["menu.file.save"]
    assert {n.keypath for n in tree.walk()} == set(result.flatten)
    assert tree.get("menu.quit") is result.flatten["menu.quit"]
    assert tree.get("menu.missing") is None


def test_missing_locale_gets_shadow_record():
    en = make_file("en.json", "en", {"x": {"y": "Hello"}})
    fr = make_file("fr.json", "fr", {"x": {"y": "Bonjour"}})
    result = TreeBuilder().build([en, fr], locales=["de"])
    record = result.flatten["x.y"].locales["de"]
    assert record.shadow is True
    assert record.value == ""
    assert record.filepath is None
    assert result.flatten["x.y"].shadow is False


def test_key_missing_in_one_locale_is_shadowed_there():
    en = make_file("en.json", "en", {"only_en": "x", "both": "y"})
    fr = make_file("fr.json", "fr", {"both": "z"})
    result = build_tree([en, fr])
    assert result.flatten["only_en"].locales["fr"].shadow is True
    assert result.flatten["both"].locales["fr"].shadow is False


def test_structural_conflict_keeps_deeper_key():
    flat = make_file("en-a.json", "en", {"a": "scalar"})
    nested = make_file("en-b.json", "en", {"a": {"b": "nested"}})
    result = build_tree([flat, nested])
    assert "a" not in result.flatten
    assert result.flatten["a.b"].get_value("en") == "nested"
    assert result.tree.children["a"].type == "tree"
    assert result.structural_conflicts == (
        StructuralConflictWarning(keypath="a", deeper=["a.b"], locales=["en"]),
    )


def test_structural_conflict_chain_drops_every_shallow_leaf():
    en = make_file("en.json", "en", {"a": "1", "a.b": "2", "a.b.c": "3"})
    result = build_tree([en])
    assert list(result.flatten) == ["a.b.c"]
    assert [w.keypath for w in result.structural_conflicts] == ["a", "a.b"]


def test_malformed_keypath_is_skipped_not_fatal():
    en = make_file("en.json", "en", {"good": "ok", "bad\\": "nope"})
    result = build_tree([en])
    assert list(result.flatten) == ["good"]
    assert len(result.skipped) == 1
    assert isinstance(result.skipped[0], KeypathFormatError)
    assert result.skipped[0].context["filepath"] == "en.json"


def test_escaped_keys_become_single_segments():
    en = make_file("en.json", "en", {"units": {"km.h": "km/h"}})
    result = build_tree([en])
    assert list(result.flatten) == ["units.km\\.h"]
    assert result.tree.children["units"].children["km.h"].keyname == "km.h"


def test_empty_object_becomes_node_without_records():
    en = make_file("en.json", "en", {"empty": {}, "full": {"k": "v"}})
    result = build_tree([en])
    node = result.tree.children["empty"]
    assert node.type == "node"
    assert dict(node.locales) == {}
    assert node.shadow is False
    assert "empty" in result.flatten


def test_empty_object_shadowed_by_real_namespace_is_not_materialised():
    en = make_file("en.json", "en", {"menu": {}})
    fr = make_file("fr.json", "fr", {"menu": {"save": "Enregistrer"}})
    result = build_tree([en, fr])
    assert list(result.flatten) == ["menu.save"]


def test_merge_conflicts_are_collected():
    a = make_file("a/en.json", "en", {"k": "A"}, mtime=1.0)
    b = make_file("b/en.json", "en", {"k": "B"}, mtime=2.0)
    result = build_tree([a, b])
    assert result.flatten["k"].get_value("en") == "B"
    assert len(result.conflicts) == 1
    assert result.conflicts[0].filepaths == ("a/en.json", "b/en.json")
    assert result.warnings == list(result.conflicts)


def test_build_is_independent_of_input_order():
    files = [
        make_file("en.json", "en", {"a": {"b": "1", "c": "2"}, "z": "last"}),
        make_file("fr.json", "fr", {"a": {"c": "deux"}, "m": "milieu"}),
        make_file("extra/en.json", "en", {"a": {"b": "uno"}}),
        make_file("de.json", "de", {"z": "zuletzt"}),
    ]
    baseline = build_tree(files)
    rng = random.Random(7)
    for _ in range(5):
        shuffled = files[:]
        rng.shuffle(shuffled)
        again = build_tree(shuffled)
        assert again.flatten == baseline.flatten
        assert list(again.flatten) == list(baseline.flatten)
        assert again.tree == baseline.tree
        assert again.conflicts == baseline.conflicts


def test_build_twice_is_equal():
    files = [make_file("en.json", "en", {"a": {"b": "hi"}}), make_file("fr.json", "fr", {"a": {"b": ""}})]
    assert build_tree(files).tree == build_tree(files).tree


def test_no_files_gives_empty_tree():
    result = build_tree([])
    assert result.flatten == {}
    assert result.tree.children == {}
