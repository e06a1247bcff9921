"""toolfetcher: fetch, unpack and track third-party tools.

Each configured tool is downloaded from GitHub (or a direct URL) into a
scratch directory, unpacked, and merged into its own destination directory.
A ``.downloaded.json`` record beside the installed files lists what was
installed and each file's digest. Later runs use it to skip, force-refresh
or update a tool without destroying files the user edited or added.
"""

__version__ = "0.1.0"
__description__ = "Fetch, unpack and track third-party tools from GitHub releases and branches"

from toolfetcher.core.dispatcher import LifecycleDispatcher, SelectionPolicy
from toolfetcher.core.reconciler import Reconciler
from toolfetcher.cli.app import app as cli

__all__ = ["LifecycleDispatcher", "SelectionPolicy", "Reconciler", "cli", "__version__"]
