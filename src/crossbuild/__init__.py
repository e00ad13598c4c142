"""
crossbuild - Cross-compile Rust projects inside target-matched containers
"""

__version__ = "0.2.2"

from .core import CrossBuilder, CrossError

__all__ = ["CrossBuilder", "CrossError"]
