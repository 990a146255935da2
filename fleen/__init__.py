"""Fleen personal static site tool.

This package compiles a tree of Markdown/HTML source files into a deployable
site, serves a live preview while editing, and hands finished builds to a
user-supplied deploy script.

The main entry point is the CLI module, which provides commands for building,
previewing and deploying a site, and for simple page management.

Layers, leaves first:
- content: decides what every source path produces (classifier and renderer).
- tree: cached directory snapshot used for navigation.
- build: compiles a site into an ordered action list and applies it.
- server / deploy: live preview and the background build-and-deploy job.
- site: the handle that owns a site root and its tree cache.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
