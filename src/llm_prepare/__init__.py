"""Prepare project trees and text sources for token-limited LLM consumption."""

__version__ = "2.0.0"
