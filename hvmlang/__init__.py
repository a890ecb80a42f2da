"""Parser, sanitizer, flattener and rulebook builder for a higher-order rewrite language."""

__version__ = "0.1.0"
__all__ = ["syntax", "sanitize", "flatten", "rulebook"]