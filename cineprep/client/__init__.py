from cineprep.client.api import CinePrepClient, CinePrepAPIError, truncate_for_tts
from cineprep.client.cache import HistoryCache, LoreCache, MemoryStore, StoreQuotaExceeded
from cineprep.client.debounce import Debouncer

__all__ = [
    "CinePrepClient",
    "CinePrepAPIError",
    "truncate_for_tts",
    "HistoryCache",
    "LoreCache",
    "MemoryStore",
    "StoreQuotaExceeded",
    "Debouncer",
]
