"""
Skills - Reusable native function collections

License: MIT
"""

from .text_memory_skill import TextMemorySkill

__all__ = ["TextMemorySkill"]
