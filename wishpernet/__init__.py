# WishperNet client core
# Room-scoped end-to-end encrypted group chat client

__version__ = "1.0.0"
