"""
Offline caching policy for the web client's service worker.

The policy is expressed against two injected capabilities so it can run
outside a browser:

* ``caches`` - a :class:`CacheStorage` (named partitions of url -> response)
* ``fetch``  - a callable ``fetch(request) -> Response`` that raises
  :class:`NetworkError` when the network is unreachable

Three strategies are selected per GET request: API passthrough-with-cache for
``/api/`` paths, cache-first for static assets, and network-first for
everything else. Other HTTP methods are not intercepted.

Cache writes never block the response path: they are handed to an executor
and tracked so that every cacheable response gets a write attempt.
"""

import logging
import threading
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from urllib.parse import urlsplit

from werkzeug.wrappers import Response

logger = logging.getLogger(__name__)

STATIC_CACHE = "food-roulette-static-v1"
DYNAMIC_CACHE = "food-roulette-dynamic-v1"

# App shell precached on install
APP_SHELL = (
    "/",
    "/index.html",
    "/manifest.json",
    "/icon-192.png",
    "/icon-512.png",
    "/apple-touch-icon.png",
    "/favicon.ico",
)

STATIC_EXTENSIONS = (
    ".js",
    ".css",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".webp",
    ".woff",
    ".woff2",
    ".ttf",
    ".eot",
)

OFFLINE_FALLBACK = "/"

API = "api"
CACHE_FIRST = "cache-first"
NETWORK_FIRST = "network-first"


class NetworkError(Exception):
    """Raised by a fetch callable when no response could be obtained."""


class InstallError(Exception):
    """The app shell could not be precached."""


@dataclass(frozen=True)
class FetchRequest:
    url: str
    method: str = "GET"

    @property
    def path(self):
        return urlsplit(self.url).path or "/"

    @property
    def cache_key(self):
        # same-origin requests are keyed by path + query so "/" and "https://host/" match
        parts = urlsplit(self.url)
        key = parts.path or "/"
        if parts.query:
            key += "?" + parts.query
        return key


def _key(request):
    if isinstance(request, FetchRequest):
        return request.cache_key
    return FetchRequest(request).cache_key


def clone_response(response):
    return Response(
        response.get_data(),
        status=response.status,
        headers=list(response.headers.items()),
    )


# --------------------
# Cache storage
# --------------------
class Cache:
    """One named partition. Last writer wins per key."""

    def __init__(self, name):
        self.name = name
        self._entries = {}
        self._lock = threading.Lock()

    def match(self, request):
        with self._lock:
            response = self._entries.get(_key(request))
        return clone_response(response) if response is not None else None

    def put(self, request, response):
        with self._lock:
            self._entries[_key(request)] = response

    def add_all(self, urls, fetch):
        """Fetch and store every url, or nothing at all."""
        fetched = []
        for url in urls:
            request = FetchRequest(url)
            response = fetch(request)
            if response.status_code != 200:
                raise NetworkError(f"{url} answered {response.status_code}")
            fetched.append((request, response))
        for request, response in fetched:
            self.put(request, response)

    def keys(self):
        with self._lock:
            return list(self._entries)


class CacheStorage:
    """In-memory stand-in for the browser's ``caches`` object."""

    def __init__(self):
        self._caches = OrderedDict()
        self._lock = threading.Lock()

    def open(self, name):
        with self._lock:
            if name not in self._caches:
                self._caches[name] = Cache(name)
            return self._caches[name]

    def has(self, name):
        with self._lock:
            return name in self._caches

    def delete(self, name):
        with self._lock:
            return self._caches.pop(name, None) is not None

    def keys(self):
        with self._lock:
            return list(self._caches)

    def match(self, request):
        """Look the request up across partitions in creation order."""
        with self._lock:
            caches = list(self._caches.values())
        for cache in caches:
            response = cache.match(request)
            if response is not None:
                return response
        return None


# --------------------
# Policy
# --------------------
def is_static_asset(path):
    return path.endswith(STATIC_EXTENSIONS)


def strategy_for(request):
    """Return the strategy name for a request, or None when it is not intercepted."""
    if request.method.upper() != "GET":
        return None
    path = request.path
    if "/api/" in path:
        return API
    if is_static_asset(path):
        return CACHE_FIRST
    return NETWORK_FIRST


class OfflineCachePolicy:
    def __init__(self, caches, fetch, executor=None,
                 static_cache=STATIC_CACHE, dynamic_cache=DYNAMIC_CACHE, app_shell=APP_SHELL):
        self.caches = caches
        self.fetch = fetch
        self.executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="cache-write")
        self.static_cache = static_cache
        self.dynamic_cache = dynamic_cache
        self.app_shell = tuple(app_shell)
        self.waiting = True
        self.controls_clients = False
        self._pending = []
        self._pending_lock = threading.Lock()

    @property
    def current_caches(self):
        return {self.static_cache, self.dynamic_cache}

    def _purge_old_caches(self):
        deleted = []
        for name in self.caches.keys():
            if name not in self.current_caches:
                logger.info("Deleting old cache: %s", name)
                self.caches.delete(name)
                deleted.append(name)
        return deleted

    # lifecycle ------------------------------------------------------------
    def install(self):
        """Precache the app shell, drop stale partitions and skip waiting."""
        logger.info("Installing offline cache (%s)", self.static_cache)
        try:
            self.caches.open(self.static_cache).add_all(self.app_shell, self.fetch)
        except NetworkError as exc:
            raise InstallError(f"failed to precache app shell: {exc}") from exc
        self._purge_old_caches()
        self.waiting = False

    def activate(self):
        """Keep only the current partitions and take control of open pages."""
        logger.info("Activating offline cache")
        deleted = self._purge_old_caches()
        self.controls_clients = True
        return deleted

    # fetch ----------------------------------------------------------------
    def handle_fetch(self, request):
        """
        Answer a request according to its strategy.

        Returns None for requests that are not intercepted; the caller then
        performs its normal network handling.
        """
        strategy = strategy_for(request)
        if strategy is None:
            return None
        if strategy == API:
            return self.api_request(request)
        if strategy == CACHE_FIRST:
            return self.cache_first(request)
        return self.network_first(request)

    def cache_first(self, request):
        cached = self.caches.match(request)
        if cached is not None:
            logger.debug("Cache hit: %s", request.url)
            return cached

        logger.debug("Cache miss, fetching from network: %s", request.url)
        try:
            response = self.fetch(request)
        except NetworkError as exc:
            logger.debug("Fetch failed, returning offline shell: %s", exc)
            return self.caches.match(OFFLINE_FALLBACK)

        self._cache_if_ok(request, response)
        return response

    def network_first(self, request):
        try:
            response = self.fetch(request)
        except NetworkError:
            logger.debug("Network failed, trying cache: %s", request.url)
            cached = self.caches.match(request)
            if cached is not None:
                return cached
            logger.debug("No cache available, returning offline shell")
            return self.caches.match(OFFLINE_FALLBACK)

        self._cache_if_ok(request, response)
        return response

    def api_request(self, request):
        try:
            response = self.fetch(request)
        except NetworkError:
            logger.debug("API fetch failed, trying cache: %s", request.url)
            cached = self.caches.match(request)
            if cached is not None:
                return cached
            # no synthetic offline answer for API data
            raise

        self._cache_if_ok(request, response)
        return response

    # cache writes ----------------------------------------------------------
    def _cache_if_ok(self, request, response):
        if response is None or response.status_code != 200:
            return
        future = self.executor.submit(self._store, request, clone_response(response))
        with self._pending_lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)

    def _store(self, request, response):
        self.caches.open(self.dynamic_cache).put(request, response)
        logger.debug("Cached: %s", request.url)

    def flush(self, timeout=None):
        """Wait for outstanding cache writes and re-raise the first failure."""
        with self._pending_lock:
            pending, self._pending = self._pending, []
        wait(pending, timeout=timeout)
        for future in pending:
            if future.done():
                future.result()

    def close(self):
        """Finish pending cache writes and stop the write executor."""
        try:
            self.flush()
        finally:
            self.executor.shutdown(wait=True)


def service_worker_config():
    """Settings the browser worker script is generated from."""
    return {
        "staticCache": STATIC_CACHE,
        "dynamicCache": DYNAMIC_CACHE,
        "precache": list(APP_SHELL),
        "staticExtensions": list(STATIC_EXTENSIONS),
        "offlineFallback": OFFLINE_FALLBACK,
    }
