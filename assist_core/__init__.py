"""
Commerce assist core: tool dispatch, tenant-scoped knowledge retrieval,
tone adaptation and nightly pattern analysis.
"""

from .core.config import VERSION as __version__
from .service import AssistantCore, build_assistant_core

__all__ = ['AssistantCore', 'build_assistant_core', '__version__']
