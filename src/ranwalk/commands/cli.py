import argparse
from pathlib import Path

from ..walker import IgnoreSet, PathWalker, WalkError, WalkRequest
from ..sinks import ConsoleSink, EntryCollector
from ..bundler import Bundler, BundleError, PlatformConfigError
from ..file_watcher import FileWatcher
from ..utils import load_ignore_spec, resolve_ignore_file


DEFAULT_PLATFORM_FILE = "platform.ts"
DEFAULT_BUNDLE_DEST = "build-target/{directive}/"


# =====================================================
# Helpers
# =====================================================

def build_requests(args):
    ignore_file = resolve_ignore_file(args.source, args.ignore_file)
    if ignore_file is not None and not ignore_file.exists():
        raise SystemExit(f"Error: ignore file not found: {ignore_file}")

    ignore_set = IgnoreSet(
        args.ignore or [],
        spec=load_ignore_spec(ignore_file),
    )

    return WalkRequest.for_directives(
        args.source,
        args.dest or "",
        args.directive or [],
        ignore_set,
    )


def make_bundler_factory(platform_file):
    def factory(request):
        return Bundler(request, platform_file=platform_file)
    return factory


# =====================================================
# Walk Command
# =====================================================

def cmd_walk(args):
    requests = build_requests(args)
    walker = PathWalker()

    if args.format == "text":
        sink = ConsoleSink()
    else:
        sink = EntryCollector(args.source)

    try:
        walker.run(requests, sink)
    except WalkError as e:
        raise SystemExit(f"Error: {e}")

    if args.format == "text":
        return

    if not len(sink):
        print("No entries found.")
        return

    if args.format == "csv":
        path = sink.to_csv(args.output)
    else:
        path = sink.to_json(args.output)
    print(f"Wrote {len(sink)} entries to: {path}")


# =====================================================
# Bundle Command
# =====================================================

def cmd_bundle(args):
    if not args.directive:
        raise SystemExit("Error: bundle needs at least one --directive")
    if not args.dest:
        # The default destination lives inside the source tree
        args.dest = DEFAULT_BUNDLE_DEST
        args.ignore = (args.ignore or []) + [DEFAULT_BUNDLE_DEST.split("/")[0]]

    requests = build_requests(args)
    walker = PathWalker()
    factory = make_bundler_factory(args.platform_file)

    print("=" * 60)
    print("Bundling project:", Path(args.source).expanduser().resolve())
    print("Directives      :", ", ".join(r.label or "-" for r in requests))
    print("=" * 60)

    try:
        for request in requests:
            bundler = factory(request)
            walker.run([request], bundler)
            bundler.report()
    except (WalkError, BundleError, PlatformConfigError) as e:
        raise SystemExit(f"Error: {e}")


# =====================================================
# Watch Command
# =====================================================

def cmd_watch(args):
    requests = build_requests(args)

    if args.bundle:
        if not args.dest:
            raise SystemExit("Error: --bundle needs --dest")
        factory = make_bundler_factory(args.platform_file)
    else:
        def factory(request):
            return ConsoleSink()

    watcher = FileWatcher(
        requests,
        factory,
        debounce_seconds=args.debounce,
        content_changes=args.bundle,
    )

    print("=" * 60)
    print("Watching project:", Path(args.source).expanduser().resolve())
    print("=" * 60)

    print("\nRunning initial walk...\n")

    try:
        watcher.run_all()
    except (WalkError, BundleError, PlatformConfigError) as e:
        raise SystemExit(f"Error: {e}")

    print("\nInitial walk complete.")
    print("Add or remove files to trigger a new walk.")
    print("Press Ctrl+C to stop.\n")

    try:
        watcher.start()
    except KeyboardInterrupt:
        print("\nWatcher stopped.")
    except (WalkError, BundleError, PlatformConfigError) as e:
        raise SystemExit(f"Error: {e}")


# =====================================================
# CLI
# =====================================================

def add_walk_arguments(parser):
    parser.add_argument("source", help="Source directory to walk")
    parser.add_argument(
        "-d", "--dest",
        help="Destination prefix substituted for the source in every path; "
             "'{directive}' is replaced by the directive label",
    )
    parser.add_argument(
        "-t", "--directive", action="append",
        help="Directive label; repeat to run one walk per label",
    )
    parser.add_argument(
        "-i", "--ignore", action="append",
        help="Skip entries whose path contains this substring (repeatable)",
    )
    parser.add_argument(
        "--ignore-file",
        help="Gitignore-style pattern file (default: <source>/.ranignore if present)",
    )


def main(argv=None):
    parser = argparse.ArgumentParser(prog="ranwalk")
    sub = parser.add_subparsers(dest="command", required=True)

    # ----------------------
    # walk
    # ----------------------
    walk = sub.add_parser("walk", help="List every entry under a directory")
    add_walk_arguments(walk)
    walk.add_argument("--format", choices=["text", "csv", "json"], default="text")
    walk.add_argument("-o", "--output", help="Output file for csv/json")
    walk.set_defaults(func=cmd_walk)

    # ----------------------
    # bundle
    # ----------------------
    bundle = sub.add_parser("bundle", help="Mirror the tree once per directive")
    add_walk_arguments(bundle)
    bundle.add_argument("--platform-file", default=DEFAULT_PLATFORM_FILE)
    bundle.set_defaults(func=cmd_bundle)

    # ----------------------
    # watch
    # ----------------------
    watch = sub.add_parser("watch", help="Walk again whenever the tree changes")
    add_walk_arguments(watch)
    watch.add_argument("--bundle", action="store_true", help="Bundle instead of printing")
    watch.add_argument("--platform-file", default=DEFAULT_PLATFORM_FILE)
    watch.add_argument("--debounce", type=float, default=0.5)
    watch.set_defaults(func=cmd_watch)

    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
