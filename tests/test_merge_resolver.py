from localetree.services.merge_resolver import MergeResolver
from tests.factories import make_file


def test_single_candidate_no_conflict():
    en = make_file("en.json", "en", {"a.b": "hi"})
    res = MergeResolver().resolve("a.b", "en", [en])
    assert res.record.value == "hi"
    assert res.record.filepath == "en.json"
    assert res.record.keyname == "b"
    assert res.conflict is None


def test_no_candidates_yields_shadow_record():
    res = MergeResolver().resolve("x.y", "de", [])
    assert res.record.shadow is True
    assert res.record.value == ""
    assert res.record.filepath is None
    assert res.conflict is None


def test_newest_mtime_wins_and_conflict_reported():
    old = make_file("b/en.json", "en", {"k": "old"}, mtime=100.0)
    new = make_file("a/en.json", "en", {"k": "new"}, mtime=200.0)
    res = MergeResolver().resolve("k", "en", [new, old])
    assert res.record.value == "new"
    assert res.conflict is not None
    assert res.conflict.filepaths == ("a/en.json", "b/en.json")
    assert res.conflict.winner == "a/en.json"
    assert res.conflict.locale == "en" and res.conflict.keypath == "k"


def test_tie_break_is_order_independent():
    a = make_file("a/en.json", "en", {"k": "A"})
    b = make_file("b/en.json", "en", {"k": "B"})
    resolver = MergeResolver()
    first = resolver.resolve("k", "en", [a, b])
    second = resolver.resolve("k", "en", [b, a])
    # lexically greatest filepath wins without timestamps
    assert first.record.value == second.record.value == "B"
    assert first.conflict == second.conflict


def test_timestamped_file_beats_untimestamped():
    stamped = make_file("a.json", "en", {"k": "stamped"}, mtime=1.0)
    bare = make_file("z.json", "en", {"k": "bare"})
    res = MergeResolver().resolve("k", "en", [bare, stamped])
    assert res.record.value == "stamped"


def test_more_specific_scope_wins_without_conflict():
    general = make_file("en.json", "en", {"menu.save": "Save"}, mtime=500.0)
    scoped = make_file("en/menu.json", "en", {"menu.save": "Save file"}, mtime=1.0, scope="menu")
    res = MergeResolver().resolve("menu.save", "en", [general, scoped])
    assert res.record.value == "Save file"
    assert res.conflict is None
