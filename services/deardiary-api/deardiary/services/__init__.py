from .crisis import CrisisAlertDispatcher, CrisisDetectionService
from .emotions import EmotionalAnalysisService
from .entries import JournalService
from .invalidation import CacheInvalidator
from .prompts import PromptService
from .themes import ThemeAnalysisService

__all__ = [
    "CacheInvalidator",
    "CrisisAlertDispatcher",
    "CrisisDetectionService",
    "EmotionalAnalysisService",
    "JournalService",
    "PromptService",
    "ThemeAnalysisService",
]
