from .analysis import EmotionCacheRepository, ThemeCacheRepository
from .entries import EntryRepository
from .profiles import ProfileRepository

__all__ = [
    "EmotionCacheRepository",
    "EntryRepository",
    "ProfileRepository",
    "ThemeCacheRepository",
]
