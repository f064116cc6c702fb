"""
Version information for esrlink.
"""
import importlib.metadata
import pathlib

import tomli

# Installed metadata first, pyproject.toml for source checkouts
try:
    __version__ = importlib.metadata.version("esrlink-agent")
except importlib.metadata.PackageNotFoundError:
    try:
        path = pathlib.Path(__file__).parent.parent / "pyproject.toml"
        with path.open("rb") as f:
            __version__ = tomli.load(f)["project"]["version"]
    except (FileNotFoundError, KeyError, tomli.TOMLDecodeError):
        __version__ = "0.0.0"
