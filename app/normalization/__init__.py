"""
app/normalization package marker.
"""

from app.normalization.row_normalizer import RowNormalizer, decode_content, parse_line

__all__ = [
    "RowNormalizer",
    "decode_content",
    "parse_line",
]
