# manifest_builder/file_utils.py
import posixpath
from pathlib import Path, PureWindowsPath
from typing import List, Optional, Union

from rich.markup import escape

from manifest_builder.data_models import Manifest
from manifest_builder.errors import WriteError


def normalize_relative_path(path_str: str) -> str:
    """
    Return the canonical POSIX form of a manifest path, relative to the output root.
    Raises ValueError for empty, absolute, home-relative or root-escaping paths.
    """
    if not isinstance(path_str, str) or not path_str.strip():
        raise ValueError("Path cannot be empty.")
    candidate = path_str.strip().replace("\\", "/")
    if candidate.startswith("~"):
        raise ValueError(f"Invalid path: {path_str} references a home directory")
    if candidate.startswith("/") or PureWindowsPath(path_str.strip()).drive:
        raise ValueError(f"Invalid path: {path_str} is absolute")
    normalized = posixpath.normpath(candidate)
    if normalized == ".":
        raise ValueError(f"Invalid path: {path_str} does not name a file")
    if normalized == ".." or normalized.startswith("../"):
        raise ValueError(f"Invalid path: {path_str} escapes the project root")
    return normalized


def resolve_within_root(root_dir: Union[str, Path], relative_path: str) -> Path:
    """Resolve relative_path under root_dir, following symlinks, and refuse anything outside it."""
    root = Path(root_dir).resolve()
    target = (root / normalize_relative_path(relative_path)).resolve()
    if not target.is_relative_to(root):
        raise ValueError(f"Invalid path: {relative_path} resolves outside {root}")
    return target


def read_local_file(file_path: Union[str, Path]) -> str:
    """Return the text content of a local file.
    Raises FileNotFoundError or OSError on issues.
    """
    with open(file_path, "r", encoding="utf-8") as f:
        return f.read()


def create_file(path: Path, content: str, console_obj, max_file_size_bytes: Optional[int] = None, display_path: str = ""):
    """Create (or overwrite) a file at 'path' with the given 'content'."""
    display_path = display_path or str(path)

    try:
        data = content.encode("utf-8")
    except UnicodeEncodeError as e:
        err_msg = f"File content cannot be encoded as UTF-8 ({e.reason})"
        console_obj.print(f"[bold red]✗[/bold red] {err_msg}: '[bright_cyan]{escape(display_path)}[/bright_cyan]'")
        raise WriteError(display_path, err_msg) from e

    if max_file_size_bytes is not None and len(data) > max_file_size_bytes:
        err_msg = f"File content exceeds {max_file_size_bytes} bytes size limit"
        console_obj.print(f"[bold red]✗[/bold red] {err_msg}: '[bright_cyan]{escape(display_path)}[/bright_cyan]'")
        raise WriteError(display_path, err_msg)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Written as bytes so the model's line endings survive unchanged
        with open(path, "wb") as f:
            f.write(data)
        console_obj.print(f"[bold blue]✓[/bold blue] Wrote '[bright_cyan]{escape(display_path)}[/bright_cyan]'")
    except (OSError, ValueError) as e:
        console_obj.print(f"[bold red]✗[/bold red] Failed to write file '{escape(display_path)}': {escape(str(e))}")
        raise WriteError(display_path, str(e)) from e


def write_diagnostic(root_dir: Union[str, Path], filename: str, content: str, console_obj) -> Path:
    """Writes a diagnostic artifact (raw provider output, notes) directly under root_dir."""
    try:
        target = resolve_within_root(root_dir, filename)
    except ValueError as e:
        raise WriteError(filename, str(e)) from e
    # Raw output is kept whole, so no size limit here; lone surrogates are escaped.
    content = (content or "").encode("utf-8", "backslashreplace").decode("utf-8")
    create_file(target, content, console_obj, display_path=filename)
    return target


def materialize_manifest(
    manifest: Manifest,
    root_dir: Union[str, Path],
    console_obj,
    max_file_size_bytes: int
) -> List[str]:
    """
    Writes every file entry under root_dir, in manifest order, and returns the
    written relative paths. Not transactional: on the first failure a
    WriteError is raised and the files already written stay on disk.
    """
    written_paths: List[str] = []
    for entry in manifest.files:
        try:
            target = resolve_within_root(root_dir, entry.path)
        except ValueError as e:
            console_obj.print(f"[bold red]✗[/bold red] Refusing to write '[bright_cyan]{escape(entry.path)}[/bright_cyan]': {escape(str(e))}")
            raise WriteError(entry.path, str(e)) from e
        create_file(target, entry.content, console_obj, max_file_size_bytes, display_path=entry.path)
        written_paths.append(entry.path)
    return written_paths
