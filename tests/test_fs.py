import asyncio
import logging

import pytest

from kiln.fs import (
    FSError,
    copy_file,
    copy_tree,
    hash_file,
    list_all_except,
    move_file,
    read_file,
    remove_tree,
    remove_trees,
    walk,
    write_file,
)


def make_tree(root):
    (root / "nested").mkdir(parents=True)
    (root / "a.md").write_text("a", encoding="utf-8")
    (root / "b.txt").write_text("b", encoding="utf-8")
    (root / "nested" / "c.md").write_text("c", encoding="utf-8")
    (root / "LICENSE").write_text("mit", encoding="utf-8")
    return root


def test_walk_matches_extension_with_or_without_dot(tmp_path):
    make_tree(tmp_path)

    found = asyncio.run(walk(tmp_path, "md"))
    dotted = asyncio.run(walk(tmp_path, ".md"))

    assert sorted(p.name for p in found) == ["a.md", "c.md"]
    assert sorted(found) == sorted(dotted)
    assert all(p.is_absolute() for p in found)


def test_walk_without_recursion_and_wildcard(tmp_path):
    make_tree(tmp_path)

    flat = asyncio.run(walk(tmp_path, "md", recurse=False))
    everything = asyncio.run(walk(tmp_path, "*"))

    assert [p.name for p in flat] == ["a.md"]
    assert sorted(p.name for p in everything) == ["LICENSE", "a.md", "b.txt", "c.md"]


def test_walk_missing_directory_logs_once_and_raises(tmp_path, caplog):
    caplog.set_level(logging.ERROR, logger="kiln")

    with pytest.raises(FSError) as excinfo:
        asyncio.run(walk(tmp_path / "missing", "md"))

    assert excinfo.value.path == tmp_path / "missing"
    errors = [r for r in caplog.records if r.name == "kiln.fs"]
    assert len(errors) == 1


def test_list_all_except_skips_excluded_and_bare_names(tmp_path):
    make_tree(tmp_path)

    found = asyncio.run(list_all_except(tmp_path, [".txt", ""]))

    assert sorted(p.name for p in found) == ["a.md", "c.md"]


def test_copy_tree_creates_destination_and_recurses(tmp_path):
    source = make_tree(tmp_path / "src")
    dest = tmp_path / "out" / "deep"

    asyncio.run(copy_tree(source, dest))

    assert (dest / "a.md").read_text(encoding="utf-8") == "a"
    assert (dest / "nested" / "c.md").exists()


def test_copy_tree_without_recursion_skips_subdirectories(tmp_path):
    source = make_tree(tmp_path / "src")
    dest = tmp_path / "dest"

    asyncio.run(copy_tree(source, dest, recurse=False))

    assert (dest / "a.md").exists()
    assert not (dest / "nested").exists()


def test_copy_without_overwrite_fails_on_existing_file(tmp_path):
    source = tmp_path / "a.txt"
    source.write_text("new", encoding="utf-8")
    dest = tmp_path / "b.txt"
    dest.write_text("old", encoding="utf-8")

    with pytest.raises(FSError):
        asyncio.run(copy_file(source, dest, overwrite=False))
    assert dest.read_text(encoding="utf-8") == "old"

    asyncio.run(copy_file(source, dest))
    assert dest.read_text(encoding="utf-8") == "new"


def test_write_and_read_file(tmp_path):
    text_file = tmp_path / "page.html"
    binary_file = tmp_path / "blob.bin"

    asyncio.run(write_file(text_file, "<p>hé</p>"))
    asyncio.run(write_file(binary_file, b"\x00\x01"))

    assert asyncio.run(read_file(text_file)) == "<p>hé</p>"
    assert binary_file.read_bytes() == b"\x00\x01"


def test_move_file_replaces_destination(tmp_path):
    source = tmp_path / "style.css"
    source.write_text("new", encoding="utf-8")
    dest = tmp_path / "style.abc.css"
    dest.write_text("old", encoding="utf-8")

    asyncio.run(move_file(source, dest))

    assert not source.exists()
    assert dest.read_text(encoding="utf-8") == "new"


def test_remove_tree_force_tolerates_missing(tmp_path):
    asyncio.run(remove_tree(tmp_path / "missing", force=True))

    with pytest.raises(FSError):
        asyncio.run(remove_tree(tmp_path / "missing"))


def test_remove_tree_recursive(tmp_path):
    target = make_tree(tmp_path / "out")

    with pytest.raises(FSError):
        asyncio.run(remove_tree(target))

    asyncio.run(remove_tree(target, recursive=True))
    assert not target.exists()


def test_remove_trees_removes_all_before_raising(tmp_path):
    first = make_tree(tmp_path / "one")
    second = make_tree(tmp_path / "two")

    with pytest.raises(FSError):
        asyncio.run(remove_trees([first, tmp_path / "missing", second], recursive=True))

    assert not first.exists()
    assert not second.exists()


def test_hash_file_is_short_and_content_based(tmp_path):
    one = tmp_path / "one.css"
    two = tmp_path / "two.css"
    one.write_text("body{}", encoding="utf-8")
    two.write_text("body{}", encoding="utf-8")

    digest = asyncio.run(hash_file(one))
    assert len(digest) == 8
    assert digest == asyncio.run(hash_file(two))

    two.write_text("body{color:red}", encoding="utf-8")
    assert asyncio.run(hash_file(two)) != digest


def test_list_all_except_partitions_walk(tmp_path):
    make_tree(tmp_path)

    everything = asyncio.run(walk(tmp_path, "*"))
    unfiltered = asyncio.run(list_all_except(tmp_path, []))
    without_md = asyncio.run(list_all_except(tmp_path, ["md"]))
    only_md = asyncio.run(walk(tmp_path, "md"))

    assert sorted(unfiltered) == sorted(everything)
    assert not any(p.suffix == ".md" for p in without_md)
    assert sorted(without_md + only_md) == sorted(everything)


def test_copy_tree_preserves_relative_paths_and_digests(tmp_path):
    source = make_tree(tmp_path / "src")
    dest = tmp_path / "dest"

    asyncio.run(copy_tree(source, dest))

    copied = asyncio.run(walk(dest, "*"))
    originals = asyncio.run(walk(source, "*"))
    assert sorted(p.relative_to(dest) for p in copied) == sorted(
        p.relative_to(source) for p in originals
    )
    for original in originals:
        twin = dest / original.relative_to(source)
        assert asyncio.run(hash_file(twin)) == asyncio.run(hash_file(original))
