"""Output file location helpers."""
from pathlib import Path
from typing import Optional, Union


def resolve_output_path(filename: Union[str, Path], output_dir: Optional[Union[str, Path]] = None) -> Path:
    """
    Resolve a metrics/report filename into the output directory.

    Relative names land in ``output_dir`` (relative to the current working
    directory), which is created if missing. Absolute paths are returned
    unchanged.
    """
    path = Path(filename)
    if path.is_absolute():
        return path

    directory = Path.cwd() / (output_dir or "chaos-cli-test")
    directory.mkdir(parents=True, exist_ok=True)
    return directory / path
