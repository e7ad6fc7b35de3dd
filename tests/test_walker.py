import os
import sys

import pytest

from ranwalk.walker import (
    EntryKind,
    IgnoreSet,
    PathWalker,
    StatusQueryError,
    TraversalError,
    WalkRequest,
    remap_path,
)
from ranwalk.utils import load_ignore_spec


# =====================================================
# Helpers
# =====================================================

def make_tree(root):
    root.mkdir()
    (root / "a.txt").write_text("a")
    (root / "sub").mkdir()
    (root / "sub" / "b.txt").write_text("b")
    (root / "sub" / "deep").mkdir()
    (root / "sub" / "deep" / "c.txt").write_text("c")
    return root


def walk_paths(request):
    return [e.path for e in PathWalker().walk(request)]


# =====================================================
# Traversal
# =====================================================

def test_walk_visits_every_entry_once(tmp_path):
    root = make_tree(tmp_path / "proj")
    src = str(root)

    paths = walk_paths(WalkRequest(src))

    assert paths == [
        src,
        os.path.join(src, "a.txt"),
        os.path.join(src, "sub"),
        os.path.join(src, "sub", "b.txt"),
        os.path.join(src, "sub", "deep"),
        os.path.join(src, "sub", "deep", "c.txt"),
    ]
    assert len(paths) == len(set(paths))


def test_walk_is_repeatable(tmp_path):
    root = make_tree(tmp_path / "proj")
    request = WalkRequest(root, ignore_set=IgnoreSet(["deep"]))

    first = list(PathWalker().walk(request))
    second = list(PathWalker().walk(request))

    assert first == second


def test_walk_classifies_files_and_directories(tmp_path):
    root = make_tree(tmp_path / "proj")

    for entry in PathWalker().walk(WalkRequest(root)):
        if os.path.isdir(entry.path):
            assert entry.kind is EntryKind.DIRECTORY
            assert entry.is_dir
        else:
            assert entry.kind is EntryKind.FILE
            assert entry.kind.value == "file"


def test_walk_is_lazy(tmp_path):
    root = make_tree(tmp_path / "proj")

    it = PathWalker().walk(WalkRequest(root))
    first = next(it)

    assert first.path == str(root)
    assert first.kind is EntryKind.DIRECTORY


def test_walk_depth_is_not_bounded_by_recursion_limit(tmp_path):
    root = tmp_path / "proj"
    deep = root.joinpath(*["d"] * 120)
    deep.mkdir(parents=True)
    (deep / "leaf.txt").write_text("x")

    frame, depth = sys._getframe(), 0
    while frame is not None:
        depth += 1
        frame = frame.f_back

    limit = sys.getrecursionlimit()
    sys.setrecursionlimit(depth + 60)
    try:
        entries = list(PathWalker().walk(WalkRequest(str(root))))
    finally:
        sys.setrecursionlimit(limit)

    assert len(entries) == 122
    assert entries[-1].path == str(deep / "leaf.txt")


def test_walk_does_not_descend_into_symlinked_directories(tmp_path):
    root = make_tree(tmp_path / "proj")
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.txt").write_text("x")
    try:
        os.symlink(outside, root / "link")
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported")

    entries = {e.path: e for e in PathWalker().walk(WalkRequest(str(root)))}

    link = os.path.join(str(root), "link")
    assert link in entries
    assert entries[link].kind is EntryKind.DIRECTORY
    assert os.path.join(link, "secret.txt") not in entries


# =====================================================
# Ignore handling
# =====================================================

def test_ignore_substring_excludes_matching_paths(tmp_path):
    root = tmp_path / "root"
    (root / "build-target").mkdir(parents=True)
    (root / "build-target" / "x.txt").write_text("x")
    (root / "x" / "build-target-old").mkdir(parents=True)
    (root / "x" / "build-target-old" / "y.txt").write_text("y")
    (root / "keep.txt").write_text("k")

    request = WalkRequest(str(root), ignore_set=IgnoreSet(["build-target"]))
    paths = walk_paths(request)

    assert os.path.join(str(root), "keep.txt") in paths
    assert os.path.join(str(root), "x") in paths
    assert not any("build-target" in p for p in paths)


def test_ignored_directory_children_are_still_tested(tmp_path):
    root = tmp_path / "root"
    pkg = root / "node_modules" / "pkg"
    pkg.mkdir(parents=True)
    (pkg / "index.js").write_text("")

    seen = []

    class RecordingIgnoreSet(IgnoreSet):
        def matches(self, path, root=None, is_dir=False):
            seen.append(path)
            return super().matches(path, root, is_dir)

    request = WalkRequest(str(root), ignore_set=RecordingIgnoreSet(["node_modules"]))
    paths = walk_paths(request)

    index = os.path.join(str(root), "node_modules", "pkg", "index.js")
    assert index in seen
    assert paths == [str(root)]


def test_ignore_applies_only_to_the_matching_node(tmp_path):
    root = tmp_path / "root"
    (root / "dist").mkdir(parents=True)
    (root / "dist" / "app.js").write_text("")

    # Matches the directory path but not its child
    class DirOnly(IgnoreSet):
        def any_contains(self, path):
            return path.endswith(os.sep + "dist")

    paths = walk_paths(WalkRequest(str(root), ignore_set=DirOnly()))

    assert os.path.join(str(root), "dist") not in paths
    assert os.path.join(str(root), "dist", "app.js") in paths


def test_ignore_spec_patterns_are_relative_to_root(tmp_path):
    root = make_tree(tmp_path / "proj")
    ignore_file = tmp_path / "patterns"
    ignore_file.write_text("*.txt\n")

    request = WalkRequest(
        str(root),
        ignore_set=IgnoreSet(spec=load_ignore_spec(ignore_file)),
    )
    paths = walk_paths(request)

    assert not any(p.endswith(".txt") for p in paths)
    assert os.path.join(str(root), "sub", "deep") in paths


def test_ignore_spec_directory_pattern(tmp_path):
    root = make_tree(tmp_path / "proj")
    ignore_file = tmp_path / "patterns"
    ignore_file.write_text("deep/\n")

    request = WalkRequest(
        str(root),
        ignore_set=IgnoreSet(spec=load_ignore_spec(ignore_file)),
    )
    paths = walk_paths(request)

    assert os.path.join(str(root), "sub", "deep") not in paths
    assert os.path.join(str(root), "sub", "b.txt") in paths


def test_empty_ignore_set_is_falsy():
    assert not IgnoreSet()
    assert IgnoreSet(["x"])
    assert IgnoreSet(["node_modules", ".git"]).any_contains("/a/.git/config")
    assert not IgnoreSet(["node_modules"]).any_contains("/a/src/main.js")


# =====================================================
# Remapping
# =====================================================

def test_remap_path_replaces_prefix():
    assert remap_path("/a/b/c/d.txt", "/a/b", "/x/y") == "/x/y/c/d.txt"


def test_remap_path_replaces_every_occurrence():
    assert remap_path("/a/b/a/b.txt", "/a/b", "/x/y") == "/x/y/x/y.txt"


def test_walk_remaps_when_destination_given(tmp_path):
    root = make_tree(tmp_path / "proj")
    src = str(root)
    dst = str(tmp_path / "out")

    entries = list(PathWalker().walk(WalkRequest(src, dst)))

    assert entries[0].remapped_path == dst
    for entry in entries:
        assert entry.remapped_path == entry.path.replace(src, dst)


def test_walk_without_destination_has_no_remap(tmp_path):
    root = make_tree(tmp_path / "proj")

    for entry in PathWalker().walk(WalkRequest(root)):
        assert entry.remapped_path is None
        assert entry.to_record()["remapped_path"] is None


# =====================================================
# Directive labels
# =====================================================

def test_for_directives_builds_one_request_per_label(tmp_path):
    ignore = IgnoreSet(["node_modules"])
    requests = WalkRequest.for_directives(
        tmp_path, "build-target/{directive}/", ["mobile", "web"], ignore
    )

    assert [r.label for r in requests] == ["mobile", "web"]
    assert [r.destination for r in requests] == [
        "build-target/mobile/",
        "build-target/web/",
    ]
    assert all(r.ignore_set is ignore for r in requests)


def test_for_directives_without_labels(tmp_path):
    requests = WalkRequest.for_directives(tmp_path, "", [])

    assert len(requests) == 1
    assert requests[0].label == ""
    assert requests[0].source == str(tmp_path)


def test_run_executes_requests_in_sequence(tmp_path):
    root = make_tree(tmp_path / "proj")
    requests = WalkRequest.for_directives(root, "", ["mobile", "web"])
    received = []

    count = PathWalker().run(requests, received.append)

    assert count == 12
    assert [e.label for e in received] == ["mobile"] * 6 + ["web"] * 6
    assert [e.path for e in received[:6]] == [e.path for e in received[6:]]


# =====================================================
# Failure handling
# =====================================================

def test_missing_root_raises_status_query_error(tmp_path):
    missing = str(tmp_path / "missing")

    with pytest.raises(StatusQueryError) as exc:
        list(PathWalker().walk(WalkRequest(missing)))

    assert exc.value.path == missing
    assert missing in str(exc.value)


def test_file_removed_mid_walk_aborts(tmp_path):
    root = tmp_path / "proj"
    root.mkdir()
    (root / "a.txt").write_text("a")
    (root / "b.txt").write_text("b")
    (root / "c.txt").write_text("c")

    it = PathWalker().walk(WalkRequest(str(root)))
    received = [next(it), next(it)]
    assert received[-1].path.endswith("a.txt")

    (root / "b.txt").unlink()

    with pytest.raises(StatusQueryError) as exc:
        next(it)

    assert exc.value.path == os.path.join(str(root), "b.txt")
    assert isinstance(exc.value.__cause__, OSError)

    # A generator that raised is exhausted
    with pytest.raises(StopIteration):
        next(it)


def test_dangling_symlink_aborts(tmp_path):
    root = tmp_path / "proj"
    root.mkdir()
    try:
        os.symlink(tmp_path / "nowhere", root / "broken")
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported")

    with pytest.raises(StatusQueryError):
        list(PathWalker().walk(WalkRequest(str(root))))


def test_unlistable_directory_raises_traversal_error(tmp_path, monkeypatch):
    root = make_tree(tmp_path / "proj")

    def failing_scandir(path):
        raise PermissionError(13, "Permission denied", path)

    monkeypatch.setattr("ranwalk.walker.os.scandir", failing_scandir)

    it = PathWalker().walk(WalkRequest(str(root)))
    assert next(it).path == str(root)

    with pytest.raises(TraversalError) as exc:
        next(it)

    assert exc.value.path == str(root)
