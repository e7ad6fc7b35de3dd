import os
import re
import shutil
from pathlib import Path
from typing import List, Optional, Union

from .walker import Entry, WalkRequest


UI_COMPONENT_SUFFIXES = (".jsx", ".tsx", ".astro", ".svelte")

EXCLUSIVE_OPEN = "<EXCLUSIVE"
EXCLUSIVE_CLOSE = "</EXCLUSIVE"
EXCLUSIVE_ATTR = re.compile(r"\bOF\s*=")
EXCLUSIVE_WILDCARD = "*"


class BundleError(RuntimeError):
    pass


class PlatformConfigError(ValueError):
    pass


# =====================================================
# Content transforms
# =====================================================

def strip_exclusive_components(text: str, directive: str, path: Optional[str] = None) -> str:
    """
    Drop every ``<EXCLUSIVE OF="...">`` block that does not target ``directive``.

    A block is kept verbatim (tags included) when its opening tag has no
    ``OF`` attribute, or when the attribute text contains the directive
    or ``*``. Dropped blocks are removed line-wise, from the line opening
    the tag through the line holding ``</EXCLUSIVE>``. Markup before the
    opening tag and after the closing tag on those two lines is kept.
    Blocks do not nest.

    Raises
    ------
    BundleError
        If an opening tag or a dropped block is never closed.
    """
    where = f" in {path}" if path else ""
    lines = text.splitlines(keepends=True)
    out: List[str] = []
    i = 0

    while i < len(lines):
        line = lines[i]
        start = line.find(EXCLUSIVE_OPEN)
        if start == -1:
            out.append(line)
            i += 1
            continue

        # Opening tag may span several lines
        tag_parts = [line[start:]]
        j = i
        while ">" not in tag_parts[-1]:
            j += 1
            if j >= len(lines):
                raise BundleError(f"Unterminated <EXCLUSIVE> tag at line {i + 1}{where}")
            tag_parts.append(lines[j])
        tag = "".join(tag_parts)
        tag = tag[:tag.index(">") + 1]

        if _tag_matches(tag, directive):
            out.extend(lines[i:j + 1])
            i = j + 1
            continue

        k = i
        close = lines[k].find(EXCLUSIVE_CLOSE, start)
        while close == -1:
            k += 1
            if k >= len(lines):
                raise BundleError(f"Unclosed <EXCLUSIVE> block at line {i + 1}{where}")
            close = lines[k].find(EXCLUSIVE_CLOSE)

        close_end = lines[k].find(">", close)
        if close_end == -1:
            tail = lines[k][len(lines[k].rstrip("\r\n")):]
        else:
            tail = lines[k][close_end + 1:]
        rest = line[:start] + tail
        if rest.strip():
            out.append(rest)
        i = k + 1

    return "".join(out)


def _tag_matches(tag: str, directive: str) -> bool:
    attr = EXCLUSIVE_ATTR.search(tag)
    if attr is None:
        return True
    targets = tag[attr.start():]
    return directive in targets or EXCLUSIVE_WILDCARD in targets


def rewrite_platform_config(text: str, device_type: str) -> str:
    """
    Replace the object literal assigned to ``PLATFORM`` with one whose
    ``MODE``, ``NAME`` and ``ID`` are all ``device_type``.
    """
    name = text.find("PLATFORM")
    if name == -1:
        raise PlatformConfigError("PLATFORM not found in the file")

    open_brace = text.find("{", name)
    close_brace = text.find("}", open_brace) if open_brace != -1 else -1
    if close_brace == -1:
        raise PlatformConfigError("PLATFORM object literal not found in the file")

    value = f'{{ MODE: "{device_type}", NAME: "{device_type}", ID: "{device_type}" }}'
    return text[:open_brace] + value + text[close_brace + 1:]


def is_ui_component(path: Union[str, Path]) -> bool:
    return Path(path).suffix in UI_COMPONENT_SUFFIXES


# =====================================================
# Bundler sink
# =====================================================

class Bundler:
    """
    Sink that mirrors walked entries into the request's destination tree.

    Every entry is written at its path relative to the source, placed
    under the destination. A relative destination is resolved against the
    source root, so ``build-target/{directive}/`` lands inside the source.
    The label of the request is the directive used to filter UI
    components and to rewrite the platform file.
    """

    def __init__(
            self,
            request: WalkRequest,
            platform_file: Optional[str] = None,
    ):
        if not request.destination:
            raise BundleError("Bundling needs a destination path")

        self.request = request
        self.root = Path(request.source)
        self.destination_root = destination_root(request)
        if self.destination_root == self.root.resolve():
            raise BundleError(f"Destination is the source directory: {request.source}")
        self.directive = request.label
        self.platform_file = (
            os.path.normpath(platform_file) if platform_file else None
        )

        self.directories = 0
        self.files = 0
        self.skipped = 0

    def __call__(self, entry: Entry) -> None:
        if entry.remapped_path is None:
            raise BundleError(f"Entry has no remapped path: {entry.path}")

        source = Path(entry.path)
        target = self.destination_root / os.path.relpath(entry.path, self.request.source)

        if is_output_path(source.resolve(), self.root.resolve(), self.destination_root):
            self.skipped += 1
            return

        if entry.is_dir:
            target.mkdir(parents=True, exist_ok=True)
            self.directories += 1
            return

        target.parent.mkdir(parents=True, exist_ok=True)

        if self._is_platform_file(entry):
            text = _read_text(source)
            _write_text(target, rewrite_platform_config(text, self.directive))
        elif is_ui_component(source):
            text = _read_text(source)
            _write_text(target, strip_exclusive_components(text, self.directive, entry.path))
        else:
            shutil.copyfile(source, target)

        self.files += 1

    def report(self) -> None:
        label = self.directive or "bundle"
        print(f"[bundle] {label}: {self.directories} directories, {self.files} files")

    def _is_platform_file(self, entry: Entry) -> bool:
        if not self.platform_file or not self.directive:
            return False
        rel = os.path.relpath(entry.path, self.request.source)
        return os.path.normpath(rel) == self.platform_file


def destination_root(request: WalkRequest) -> Path:
    return (Path(request.source) / request.destination).resolve()


def is_output_path(path: Path, source_root: Path, output_root: Path) -> bool:
    """
    True for paths inside ``output_root`` and for the directories leading
    to it from ``source_root``. All three paths must be resolved.
    """
    if path == output_root or output_root in path.parents:
        return True
    return path in output_root.parents and path != source_root and source_root in path.parents


def _read_text(path: Path) -> str:
    with path.open("r", encoding="utf-8", newline="") as f:
        return f.read()


def _write_text(path: Path, text: str) -> None:
    with path.open("w", encoding="utf-8", newline="") as f:
        f.write(text)
