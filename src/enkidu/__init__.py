"""
enkidu - wiki-link graph tools for a markdown notes workspace.

This package provides:
- Parsing of [[target]] and [[target|display]] references
- Resolution of references to note files, with suggestions for broken ones
- A bidirectional link index with analytics and an on-disk cache
- Export of notes with references rewritten as markdown links
"""

__version__ = "0.3.0"
