import os
import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence, Union


# =====================================================
# Errors
# =====================================================

class WalkError(RuntimeError):
    """
    Base class for errors that abort a walk.

    The offending path is kept on ``path``; the underlying ``OSError``
    is chained as ``__cause__``.
    """

    def __init__(self, path: str, message: str):
        super().__init__(f"{message}: {path}")
        self.path = path


class TraversalError(WalkError):
    def __init__(self, path: str):
        super().__init__(path, "Cannot list directory")


class StatusQueryError(WalkError):
    def __init__(self, path: str):
        super().__init__(path, "Cannot query file status")


# =====================================================
# Data model
# =====================================================

class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class Entry:
    """
    One node discovered during a walk.
    """
    path: str
    kind: EntryKind
    remapped_path: Optional[str] = None
    label: str = ""

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    def to_record(self) -> dict:
        return {
            "path": self.path,
            "kind": self.kind.value,
            "remapped_path": self.remapped_path,
            "label": self.label,
        }


class IgnoreSet:
    """
    Ordered ignore substrings, plus an optional gitignore-style ``PathSpec``.

    Substrings are matched with a plain ``in`` against the full path, so
    ``"build-target"`` also excludes ``build-target-old``. The ``PathSpec``,
    when present, is matched against the path relative to the walk root.
    """

    def __init__(
            self,
            substrings: Iterable[str] = (),
            spec: Optional[Any] = None,
    ):
        self.substrings: List[str] = [s for s in substrings]
        self.spec = spec

    def __bool__(self) -> bool:
        return bool(self.substrings) or self.spec is not None

    def __repr__(self) -> str:
        return f"IgnoreSet({self.substrings!r}, spec={self.spec is not None})"

    def any_contains(self, path: str) -> bool:
        for substring in self.substrings:
            if substring in path:
                return True
        return False

    def matches(self, path: str, root: Optional[str] = None, is_dir: bool = False) -> bool:
        if self.any_contains(path):
            return True

        if self.spec is None or root is None:
            return False

        rel = os.path.relpath(path, root)
        if rel == "." or rel.startswith(".."):
            return False

        rel = rel.replace(os.sep, "/")
        if is_dir:
            rel = rel + "/"

        return bool(self.spec.match_file(rel))


def remap_path(path: str, source: str, destination: str) -> str:
    """
    Substitute every occurrence of ``source`` in ``path`` by ``destination``.
    """
    return path.replace(source, destination)


@dataclass
class WalkRequest:
    """
    Parameters of a single walk.

    ``label`` is the directive type; it does not affect traversal or
    filtering and is only copied onto the produced entries.
    """
    source: Union[str, Path]
    destination: str = ""
    ignore_set: Optional[IgnoreSet] = None
    label: str = ""

    DIRECTIVE_TOKEN = "{directive}"

    def __post_init__(self):
        self.source = str(self.source)
        if self.ignore_set is None:
            self.ignore_set = IgnoreSet()

    @classmethod
    def for_directives(
            cls,
            source: Union[str, Path],
            destination: str,
            labels: Sequence[str],
            ignore_set: Optional[IgnoreSet] = None,
    ) -> List["WalkRequest"]:
        if not labels:
            return [cls(source, destination, ignore_set)]

        return [
            cls(
                source,
                destination.replace(cls.DIRECTIVE_TOKEN, label),
                ignore_set,
                label,
            )
            for label in labels
        ]


# =====================================================
# Walker
# =====================================================

class PathWalker:
    """
    Depth-first enumeration of every node below a root path.

    Each node is tested against the request's ignore set on its own: an
    ignored directory is not reported, but its children are still
    visited and tested individually. Symbolic links below the root are
    never descended into. Classification uses ``os.stat`` and therefore
    follows links, so a dangling link aborts the walk the same way a
    vanished file does.
    """

    def walk(self, request: WalkRequest) -> Iterator[Entry]:
        """
        Lazily yield the entries of one walk.

        Raises
        ------
        StatusQueryError
            A node could not be classified.
        TraversalError
            A directory could not be listed.
        """
        root = request.source

        # Root: no listing to take the type from, links are followed
        stack = [(root, os.path.isdir(root))]

        while stack:
            path, is_dir = stack.pop()

            if not request.ignore_set.matches(path, root, is_dir):
                yield self._classify(request, path)

            if is_dir:
                stack.extend(reversed(self._list_dir(path)))

    def run(
            self,
            requests: Iterable[WalkRequest],
            sink: Callable[[Entry], Any],
    ) -> int:
        """
        Run requests one after another, feeding every entry to ``sink``.

        Returns the number of reported entries.
        """
        count = 0
        for request in requests:
            for entry in self.walk(request):
                sink(entry)
                count += 1
        return count

    # ----------------
    # internal logic
    # ----------------

    def _classify(self, request: WalkRequest, path: str) -> Entry:
        try:
            st = os.stat(path)
        except OSError as e:
            raise StatusQueryError(path) from e

        kind = EntryKind.DIRECTORY if stat.S_ISDIR(st.st_mode) else EntryKind.FILE

        remapped = None
        if request.destination:
            remapped = remap_path(path, request.source, request.destination)

        return Entry(path, kind, remapped, request.label)

    @staticmethod
    def _list_dir(path: str) -> List[tuple]:
        try:
            with os.scandir(path) as it:
                children = [
                    (os.path.join(path, e.name), e.is_dir(follow_symlinks=False))
                    for e in it
                ]
        except OSError as e:
            raise TraversalError(path) from e

        children.sort(key=lambda c: os.path.basename(c[0]))
        return children
