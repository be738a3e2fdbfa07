"""
code2llm: Pack source trees into LLM-readable Markdown segments.

This tool produces character-budgeted Markdown bundles suitable for sending to a model
with a limited context window:
- Literal-aware code compression (standard or ultra)
- Greedy segment packing with mid-file line splitting and continuation headers
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
