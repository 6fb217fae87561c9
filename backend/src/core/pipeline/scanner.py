"""
Tree Scanner - Repository corpus and structure rendering.

Walks a directory tree into an in-memory corpus of text files and
renders the filtered tree as a connector-drawn listing.
"""

import os
from dataclasses import dataclass, field
from typing import Iterator, Optional

import structlog

from src.core.errors import ScanError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FileRecord:
    """A scanned text file. Lives only for one pipeline run."""
    path: str
    relative_path: str
    content: str
    extension: str
    size: int


@dataclass
class ScanResult:
    """Corpus plus tree rendering for one repository."""
    files: list[FileRecord] = field(default_factory=list)
    structure: str = ""

    @property
    def total_files(self) -> int:
        return len(self.files)

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.files)


class TreeScanner:
    """
    Depth-first repository scanner.

    Directory names in IGNORED_DIRS are pruned before descent and file
    names in IGNORED_FILES are dropped regardless of extension. Only
    files whose extension is in CODE_EXTENSIONS are read.

    Both traversals use an explicit stack of directory listings, so deep
    trees never touch the interpreter recursion limit. Any unreadable
    directory or file aborts the scan with ScanError; there is no
    partial corpus. Files are read whole with no size cap.
    """

    IGNORED_DIRS = frozenset({
        "node_modules",
        ".git",
        "dist",
        "build",
        "coverage",
        ".next",
        ".cache",
        "tmp",
        "temp",
    })

    IGNORED_FILES = frozenset({
        ".DS_Store",
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
    })

    CODE_EXTENSIONS = frozenset({
        ".js", ".ts", ".jsx", ".tsx",
        ".py", ".java", ".go", ".rs",
        ".c", ".cpp", ".h", ".hpp",
        ".css", ".scss", ".html",
        ".json", ".md", ".yaml", ".yml", ".sql",
    })

    # Tree rendering glyphs
    BRANCH = "├── "
    LAST = "└── "
    PIPE = "│   "
    BLANK = "    "

    def __init__(
        self,
        ignored_dirs: Optional[frozenset[str]] = None,
        ignored_files: Optional[frozenset[str]] = None,
        extensions: Optional[frozenset[str]] = None,
    ):
        self.ignored_dirs = ignored_dirs if ignored_dirs is not None else self.IGNORED_DIRS
        self.ignored_files = ignored_files if ignored_files is not None else self.IGNORED_FILES
        self.extensions = extensions if extensions is not None else self.CODE_EXTENSIONS

    def scan(self, root_path: str) -> ScanResult:
        """
        Scan a repository.

        Args:
            root_path: Directory to scan

        Returns:
            ScanResult with the corpus (traversal order) and tree text

        Raises:
            ScanError: If any directory or file cannot be read
        """
        files = list(self.iter_files(root_path))
        structure = self.render_tree(root_path)

        result = ScanResult(files=files, structure=structure)
        logger.info(
            "scan_completed",
            root=root_path,
            total_files=result.total_files,
            total_size=result.total_size,
        )
        return result

    # ======================================================================
    # Corpus traversal
    # ======================================================================

    def iter_files(self, root_path: str) -> Iterator[FileRecord]:
        """Yield FileRecords depth-first in directory-read order."""
        stack = [iter(self._list_dir(root_path))]

        while stack:
            entry = next(stack[-1], None)
            if entry is None:
                stack.pop()
                continue

            if entry.is_dir(follow_symlinks=False):
                if entry.name not in self.ignored_dirs:
                    stack.append(iter(self._list_dir(entry.path)))
            elif entry.is_file(follow_symlinks=False):
                if entry.name in self.ignored_files:
                    continue
                extension = os.path.splitext(entry.name)[1]
                if extension in self.extensions:
                    yield self._read_file(root_path, entry.path, extension)

    def _read_file(self, root_path: str, full_path: str, extension: str) -> FileRecord:
        try:
            with open(full_path, encoding="utf-8") as f:
                content = f.read()
            size = os.stat(full_path).st_size
        except (OSError, UnicodeDecodeError) as e:
            raise ScanError(f"Cannot read file {full_path}: {e}", path=full_path) from e

        return FileRecord(
            path=full_path,
            relative_path=os.path.relpath(full_path, root_path),
            content=content,
            extension=extension,
            size=size,
        )

    # ======================================================================
    # Tree rendering
    # ======================================================================

    def render_tree(self, root_path: str) -> str:
        """
        Render the filtered tree below root_path.

        The last entry of each directory gets the LAST connector and a
        blank continuation prefix for its subtree.
        """
        lines: list[str] = []
        # Each frame: (visible entries, next index, prefix)
        stack = [(self._visible_entries(root_path), 0, "")]

        while stack:
            entries, index, prefix = stack[-1]
            if index >= len(entries):
                stack.pop()
                continue
            stack[-1] = (entries, index + 1, prefix)

            entry = entries[index]
            is_last = index == len(entries) - 1
            lines.append(f"{prefix}{self.LAST if is_last else self.BRANCH}{entry.name}")

            if entry.is_dir(follow_symlinks=False):
                child_prefix = prefix + (self.BLANK if is_last else self.PIPE)
                stack.append((self._visible_entries(entry.path), 0, child_prefix))

        return "".join(line + "\n" for line in lines)

    def _visible_entries(self, path: str) -> list[os.DirEntry]:
        return [
            entry for entry in self._list_dir(path)
            if entry.name not in self.ignored_dirs and entry.name not in self.ignored_files
        ]

    # ======================================================================
    # Helpers
    # ======================================================================

    def _list_dir(self, path: str) -> list[os.DirEntry]:
        try:
            with os.scandir(path) as it:
                return list(it)
        except OSError as e:
            raise ScanError(f"Cannot read directory {path}: {e}", path=path) from e
