import logging
from datetime import timedelta
from pathlib import Path
from typing import Optional, Union

import requests
import requests_cache

from zip_mapping.config import settings

logger = logging.getLogger(__name__)

_DEFAULT = object()


def cached_session(cache_dir: Union[str, Path] = None, max_age_days=_DEFAULT) -> requests_cache.CachedSession:
    """
    HTTP session whose GET responses (ACS tables, ZIP boundaries) are kept in
    a SQLite file under cache_dir. max_age_days=None keeps entries until
    invalidate() or clear() removes them.
    """
    cache_dir = Path(cache_dir or settings.CACHE_DIR)
    cache_dir.mkdir(parents=True, exist_ok=True)
    if max_age_days is _DEFAULT:
        max_age_days = settings.CACHE_MAX_AGE_DAYS
    expire_after = -1 if max_age_days is None else timedelta(days=max_age_days)
    # the Census API key must not be part of the cache key
    return requests_cache.CachedSession(str(cache_dir / "http_cache"), expire_after=expire_after,
                                        ignored_parameters=["key"])


def request_url(url: str, params: Optional[dict] = None) -> str:
    return requests.Request("GET", url, params=params).prepare().url


def invalidate(session: requests_cache.CachedSession, url: str, params: Optional[dict] = None):
    logger.info("invalidating cached %s", url)
    session.cache.delete(urls=[request_url(url, params)])


def clear(session: requests_cache.CachedSession):
    session.cache.clear()
