"""A radix-tree HTTP router with middleware stacks, mountable sub-routers and rendering helpers."""

__version__ = "0.1.0"