from pathlib import Path
import ranwalk as rw


def main():
    # Root directory to walk
    root = Path("../src/ranwalk")

    request = rw.WalkRequest(
        root,
        destination="output/ranwalk",
        ignore_set=rw.IgnoreSet(["__pycache__"]),
    )

    # Print every entry
    walker = rw.PathWalker()
    walker.run([request], rw.ConsoleSink())

    # Export the same walk
    collector = rw.EntryCollector(root)
    walker.run([request], collector)
    collector.to_csv("output/ranwalk.csv")
    collector.to_json("output/ranwalk.json")

    print("Walk completed.")
    print("Generated: output/ranwalk.csv, output/ranwalk.json")
    return


if __name__ == "__main__":
    main()
