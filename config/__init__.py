# termini_insights/config/__init__.py
# Re-exports the validated 'settings' singleton so every module can simply do
# `from config import settings`.

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
