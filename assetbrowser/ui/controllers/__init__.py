"""Browser panels hosted by the asset browser window."""

from .browser_context import BrowserContext
from .browser_panel import BrowserPanel
from .cloud_grid_panel import CloudGridPanel
from .cloud_panel import CloudPanel
from .grid_panel import GridPanel
from .tree_panel import TreePanel

__all__ = [
    "BrowserContext",
    "BrowserPanel",
    "CloudGridPanel",
    "CloudPanel",
    "GridPanel",
    "TreePanel",
]
