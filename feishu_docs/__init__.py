"""
Feishu docs exporter — pulls documents out of Feishu knowledge spaces,
converts rich-text blocks and spreadsheet grids to Markdown, writes them
into a sanitized folder tree, and searches the result on disk.
"""

__version__ = "1.0.0"
