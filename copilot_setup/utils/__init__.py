"""
Utility modules for the Copilot CLI setup step.
"""

from .logging import setup_root_logger, AnnotationFormatter

__all__ = ["setup_root_logger", "AnnotationFormatter"]
