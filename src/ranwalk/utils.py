from pathlib import Path
from typing import Optional, Union

from pathspec import PathSpec


DEFAULT_IGNORE_NAME = ".ranignore"


def makedir_exist_ok(path):
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def load_ignore_spec(ignore_file: Optional[Union[str, Path]]):
    if ignore_file is None:
        return None
    patterns = Path(ignore_file).read_text(encoding="utf-8").splitlines()
    ignore_spec = PathSpec.from_lines("gitwildmatch", patterns)
    return ignore_spec


def resolve_ignore_file(root: Union[str, Path], ignore_arg: Optional[str]):
    if ignore_arg:
        return Path(ignore_arg).expanduser().resolve()
    candidate = Path(root).expanduser() / DEFAULT_IGNORE_NAME
    return candidate if candidate.exists() else None
