"""HTML parsers for upstream pages."""

from src.providers.parsing.dotabuff_parser import DotabuffParser

__all__ = ["DotabuffParser"]
