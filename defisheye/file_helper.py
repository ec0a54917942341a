"""
File-system helpers: directory listing and temporary output paths.
"""

import os
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from .errors import InvalidConfiguration, IOFailure


def list_directory(directory: Union[str, Path]) -> List[Path]:
    """
    List the regular files of a directory, sorted by name.

    Raises:
        InvalidConfiguration: If the directory does not exist.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise InvalidConfiguration(f"No such directory: {directory}", directory)
    return sorted(p for p in directory.iterdir() if p.is_file() and not p.name.startswith('.'))


def create_temporary_file(prefix: str, suffix: str, directory: Optional[Union[str, Path]] = None) -> Path:
    """
    Allocate an empty temporary file and return its path.

    Args:
        prefix: Filename prefix, e.g. "undistorted".
        suffix: Filename suffix including the dot, e.g. ".jpg".
        directory: Parent directory. Defaults to the system temp directory.
    """
    try:
        fd, path = tempfile.mkstemp(prefix=prefix, suffix=suffix,
                                    dir=str(directory) if directory is not None else None)
    except OSError as e:
        raise IOFailure(f"Failed to create temporary file: {e}") from e
    os.close(fd)
    return Path(path)


def create_output_file(directory: Union[str, Path], stem: str, suffix: str) -> Path:
    """
    Create a new empty file `<stem><suffix>` in directory.

    An existing file is never reused: when the name is taken, `_1`, `_2`, ...
    is appended to the stem. The returned file belongs to the caller alone.

    Raises:
        IOFailure: If the directory cannot be created or written.
    """
    directory = Path(directory)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise IOFailure(f"Cannot create output directory {directory}: {e}", directory) from e

    counter = 0
    while True:
        name = f"{stem}{suffix}" if counter == 0 else f"{stem}_{counter}{suffix}"
        path = directory / name
        try:
            with open(path, 'x'):
                pass
        except FileExistsError:
            counter += 1
            continue
        except OSError as e:
            raise IOFailure(f"Cannot create output file {path}: {e}", path) from e
        return path


def remove_partial_output(path: Union[str, Path]):
    """Delete a destination left behind by a failed write."""
    path = Path(path)
    if path.exists():
        path.unlink()
        print(f"[Files] Removed partial output {path}")
