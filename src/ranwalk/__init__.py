from . import commands
from .walker import (
    Entry,
    EntryKind,
    IgnoreSet,
    PathWalker,
    StatusQueryError,
    TraversalError,
    WalkError,
    WalkRequest,
    remap_path,
)
from .sinks import ConsoleSink, EntryCollector
from .bundler import Bundler
from .file_watcher import FileWatcher
