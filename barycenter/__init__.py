"""Barycenter package.

Avoid importing submodules at package import time so that logger
configuration only happens when a stage or the CLI is actually used.
"""

__all__: list[str] = []
