"""codemap: structural code graph and code map extraction for mixed-language file lists."""

__version__ = "0.1.0"
