"""ddlplan - plans ordered schema migrations by diffing a live database against entity descriptors."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("ddlplan")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = ["__version__"]
