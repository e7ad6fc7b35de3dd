from pathlib import Path
import ranwalk as rw


def main():
    # -------------------------------------------------
    # Project root and the directives to build for
    # -------------------------------------------------
    project_root = Path("./app").resolve()
    directives = ["mobile", "web"]
    ignore_set = rw.IgnoreSet(["node_modules", "build-target", ".git"])

    requests = rw.WalkRequest.for_directives(
        project_root,
        "build-target/{directive}/",
        directives,
        ignore_set,
    )

    walker = rw.PathWalker()
    for request in requests:
        bundler = rw.Bundler(request, platform_file="platform.ts")
        walker.run([request], bundler)
        bundler.report()

    print("Bundle completed.")
    return


if __name__ == "__main__":
    main()
