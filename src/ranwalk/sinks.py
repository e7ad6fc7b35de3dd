import csv
import json
import sys
from pathlib import Path
from typing import List, Optional, TextIO, Union

from .utils import makedir_exist_ok
from .walker import Entry


class ConsoleSink:
    """
    Print one line per entry: ``[label] kind path -> remapped``.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream

    def __call__(self, entry: Entry) -> None:
        print(self.format(entry), file=self.stream or sys.stdout)

    @staticmethod
    def format(entry: Entry) -> str:
        line = f"{entry.kind.value:<9} {entry.path}"
        if entry.label:
            line = f"[{entry.label}] {line}"
        if entry.remapped_path is not None:
            line = f"{line} -> {entry.remapped_path}"
        return line


class EntryCollector:
    """
    Sink that keeps every entry in memory and exports them as CSV or JSON.

    The export layout mirrors the entry records: one row per entry in
    traversal order, with the columns listed in :attr:`SCHEMA`.
    """

    SCHEMA = [
        ("path", "Full path of the entry"),
        ("kind", "Entry kind: 'file' or 'directory'"),
        ("remapped_path", "Path with source replaced by destination; empty if no destination"),
        ("label", "Directive label of the walk that produced the entry"),
    ]

    def __init__(self, source: Optional[Union[str, Path]] = None):
        self.source = None if source is None else str(source)
        self.entries: List[Entry] = []

    def __call__(self, entry: Entry) -> None:
        self.entries.append(entry)

    def __len__(self) -> int:
        return len(self.entries)

    def records(self) -> List[dict]:
        return [e.to_record() for e in self.entries]

    def to_dict(self) -> dict:
        return {
            "root": self.source,
            "schema": [
                {"name": name, "description": desc}
                for name, desc in self.SCHEMA
            ],
            "entries": self.records(),
        }

    def to_json(
            self,
            output: Optional[Union[str, Path]] = None,
            *,
            indent: int = 2,
            ensure_ascii: bool = False,
    ) -> Path:
        """
        Write the collected entries as JSON.

        Parameters
        ----------
        output : str | pathlib.Path | None, optional
            Destination file. Defaults to ``<root-name>.json`` in the
            current working directory.

        Raises
        ------
        RuntimeError
            If nothing has been collected.
        """
        if not self.entries:
            raise RuntimeError("No walk results available. Run a walk first.")

        path = (
            self._default_output_path(".json")
            if output is None
            else Path(output)
        )

        makedir_exist_ok(path)

        with path.open("w", encoding="utf-8") as f:
            json.dump(
                self.to_dict(),
                f,
                indent=indent,
                ensure_ascii=ensure_ascii,
            )
        return path

    def to_csv(
            self,
            output: Optional[Union[str, Path]] = None,
            *,
            include_schema_comment: bool = True,
    ) -> Path:
        """
        Write the collected entries as CSV.

        Parameters
        ----------
        output : str | pathlib.Path | None, optional
            Destination file. Defaults to ``<root-name>.csv`` in the
            current working directory.
        include_schema_comment : bool, default=True
            Prepend ``# name: description`` lines for every column.

        Raises
        ------
        RuntimeError
            If nothing has been collected.
        """
        if not self.entries:
            raise RuntimeError("No walk results available. Run a walk first.")

        path = (
            self._default_output_path(".csv")
            if output is None
            else Path(output)
        )

        makedir_exist_ok(path)

        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)

            if include_schema_comment:
                for name, desc in self.SCHEMA:
                    f.write(f"# {name}: {desc}\n")

            writer.writerow([name for name, _ in self.SCHEMA])
            for record in self.records():
                writer.writerow([
                    "" if record[name] is None else record[name]
                    for name, _ in self.SCHEMA
                ])
        return path

    def _default_output_path(self, suffix: str) -> Path:
        name = "root"
        if self.source is not None:
            name = Path(self.source).expanduser().resolve().name or "root"
        return Path.cwd() / f"{name}{suffix}"
