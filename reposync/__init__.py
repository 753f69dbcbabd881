"""
reposync - idempotent clone-or-pull synchronization of git repositories.

Keeps checkouts of remote branches present and up to date beneath a
workspace root, typically a persistent volume populated by an init container.
"""

__version__ = "1.0.0"
__author__ = "reposync Team"
__description__ = "Idempotent repository synchronization for persistent workspaces"

from .runner import main

__all__ = ["main"]
