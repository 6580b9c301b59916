"""
SOLE RESPONSIBILITY: Installs the environment-aware URL rewrite over the host's request
primitives (request / upload_file / download_file) and over an optional httpx client.

Install is one-way: unpatched -> patched. A second install is a no-op that logs and returns False.
"""

import asyncio
import functools
import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

from ..core.environments import PLACEHOLDER_TOKENS
from ..core.errors import ErrorCode, ImageDownloadError
from ..core.media import MediaRewriter
from ..core.resolver import EnvironmentManager
from ..core.urls import UrlNormalizer, fix_host, join_url
from .http_hooks import HttpClient, install_httpx_hooks

logger = logging.getLogger(__name__)

# Host primitives that take a url option, in install order
PRIMITIVES = ("request", "upload_file", "download_file")

# Marker left on a patched host so a second interceptor can tell
PATCH_MARKER = "__miniroute_patched__"


def lock_attributes(host: Any, names: Iterable[str]) -> None:
    """
    Make the given attributes write-once on host by swapping its class for a subclass
    whose __setattr__ / __delattr__ refuse to rebind them.

    Raises TypeError when the host's class cannot be swapped (built-in types).
    """
    locked = frozenset(names)
    base_cls = type(host)

    def __setattr__(self, name, value):
        if name in locked:
            raise AttributeError(f"'{name}' is locked by the miniroute request interceptor")
        base_cls.__setattr__(self, name, value)

    def __delattr__(self, name):
        if name in locked:
            raise AttributeError(f"'{name}' is locked by the miniroute request interceptor")
        base_cls.__delattr__(self, name)

    guarded_cls = type(
        f"Locked{base_cls.__name__}",
        (base_cls,),
        {"__slots__": (), "__setattr__": __setattr__, "__delattr__": __delattr__},
    )
    host.__class__ = guarded_cls


class RequestInterceptor:
    """
    Routes every outgoing request through the resolved environment.

    Holds its own "patched" state; create one per process at startup
    (see miniroute.client.factory.create_interceptor).
    """

    def __init__(
        self,
        environment: EnvironmentManager,
        rewriter: Optional[MediaRewriter] = None,
        is_production: bool = False,
        poll_attempts: int = 20,
        poll_interval: float = 0.5,
    ):
        self.environment = environment
        self.is_production = is_production
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval
        self.normalizer = UrlNormalizer(self.base_url)
        self.rewriter = rewriter if rewriter is not None else MediaRewriter(self.base_url)
        self.host: Any = None
        self.patched = False
        self.patched_primitives: List[str] = []
        self._http_clients: Set[int] = set()

    # -------------------- Base resolution --------------------

    def set_production(self, is_production: bool) -> None:
        self.is_production = bool(is_production)
        logger.info(f"Production mode {'enabled' if self.is_production else 'disabled'}")

    def base_url(self) -> str:
        return self.environment.get_base_url(self.is_production)

    def resolve_url(self, path: Any, base: Any = None) -> str:
        """URL a request for path would be dispatched to."""
        return self.normalizer.resolve(path, base)

    # -------------------- Install --------------------

    def install(self, host: Any, http_client: Optional[HttpClient] = None) -> bool:
        """
        Wrap host.request / host.upload_file / host.download_file and lock them.
        Returns True on the first install, False when already patched.
        """
        if self.patched:
            logger.info("Request interceptor already installed, skipping")
            return False
        if getattr(host, PATCH_MARKER, False):
            logger.info("Host already patched by another interceptor, skipping")
            return False

        for name in PRIMITIVES:
            primitive = getattr(host, name, None)
            if not callable(primitive):
                continue
            try:
                setattr(host, name, self.wrap_primitive(primitive, name))
                self.patched_primitives.append(name)
            except Exception as e:
                logger.error(f"{ErrorCode.INSTALL_FAILED.tag()} Could not patch {name}: {e}")

        try:
            setattr(host, PATCH_MARKER, True)
            lock_attributes(host, self.patched_primitives + [PATCH_MARKER])
        except (TypeError, AttributeError) as e:
            logger.warning(f"{ErrorCode.INSTALL_FAILED.tag()} Patched primitives could not be locked: {e}")

        self.host = host
        self.patched = True
        logger.info(f"Request interceptor installed on {', '.join(self.patched_primitives) or 'no primitives'}")
        logger.info(f"Current API base URL: {self.base_url()}")

        if http_client is not None:
            self.register_http_client(http_client)

        return True

    def wrap_primitive(self, primitive: Callable[..., Any], name: str = "request") -> Callable[..., Any]:
        """
        Wrap one host primitive. The wrapper takes an options dict (or keyword arguments),
        rewrites options["url"] and wraps options["success"], then calls the primitive.
        """

        @functools.wraps(primitive)
        def wrapper(options: Optional[Dict[str, Any]] = None, **kwargs):
            opts = dict(options or {})
            opts.update(kwargs)

            per_call_base = opts.get("base_url") or opts.get("baseUrl")
            opts["url"] = self.resolve_url(opts.get("url", ""), per_call_base)

            if any(token in opts["url"] for token in PLACEHOLDER_TOKENS):
                logger.error(
                    f"{ErrorCode.PLACEHOLDER_BASE_URL.tag()} {name} is going to an unconfigured host: {opts['url']}. "
                    "Run 'miniroute set-base-url <env> <url>' or configure the profile base_url"
                )

            success = opts.get("success")
            if callable(success):
                opts["success"] = self._wrap_success(success, per_call_base)

            return primitive(opts)

        return wrapper

    def _wrap_success(self, callback: Callable[[Any], Any], per_call_base: Any) -> Callable[[Any], Any]:
        def on_success(response):
            self.rewrite_response(response, per_call_base)
            return callback(response)

        return on_success

    def rewrite_response(self, response: Any, per_call_base: Any = None) -> Any:
        """
        Rewrite media fields of a host response in place. Never raises:
        on failure the response is left as received.
        """
        base = self.normalizer.fix_host(per_call_base) if per_call_base else self.base_url()
        try:
            if isinstance(response, dict) and "data" in response:
                data = response["data"]
                if isinstance(data, str):
                    # upload_file delivers its JSON body as text
                    stripped = data.strip()
                    if stripped.startswith(("{", "[")):
                        parsed = json.loads(stripped)
                        self.rewriter.rewrite(parsed, base)
                        response["data"] = json.dumps(parsed, ensure_ascii=False)
                else:
                    self.rewriter.rewrite(data, base)
            else:
                self.rewriter.rewrite(response, base)
        except Exception as e:
            logger.warning(f"{ErrorCode.REWRITE_FAILED.tag()} Response delivered without media rewrite: {e}")
        return response

    # -------------------- Third-party HTTP client --------------------

    def register_http_client(self, client: HttpClient) -> bool:
        """
        Route an httpx client through the resolved environment.
        Call this as soon as the client exists; registering the same client twice is a no-op.
        """
        if id(client) in self._http_clients:
            return False
        try:
            install_httpx_hooks(client, self)
        except Exception as e:
            logger.error(f"{ErrorCode.INSTALL_FAILED.tag()} Could not install httpx hooks: {e}")
            return False
        self._http_clients.add(id(client))
        logger.info(f"httpx client routed to {client.base_url}")
        return True

    async def wait_for_http_client(
        self,
        lookup: Callable[[], Optional[HttpClient]],
        attempts: Optional[int] = None,
        interval: Optional[float] = None,
    ) -> bool:
        """
        Poll lookup() up to `attempts` times, `interval` seconds apart, and register the
        client once it appears. For code that cannot call register_http_client directly.
        """
        attempts = self.poll_attempts if attempts is None else attempts
        interval = self.poll_interval if interval is None else interval
        for attempt in range(attempts):
            try:
                client = lookup()
            except Exception as e:
                logger.debug(f"HTTP client lookup failed on attempt {attempt + 1}: {e}")
                client = None

            if client is not None:
                return self.register_http_client(client)

            if attempt < attempts - 1:
                await asyncio.sleep(interval)

        logger.debug(f"No HTTP client appeared after {attempts} attempts")
        return False

    # -------------------- Image helpers --------------------

    def get_image_url(self, path: Any) -> str:
        """Absolute URL for an image path; absolute URLs only get their loopback host fixed."""
        if not isinstance(path, str) or not path.strip():
            return ""
        base = self.base_url()
        return fix_host(join_url(base, path.strip()), base)

    def get_image_urls(self, paths: Union[str, Iterable[Any], None]) -> List[str]:
        """Absolute URLs for a comma-separated string or a list of paths; blank and non-string items are dropped."""
        if not paths:
            return []
        items = paths.split(",") if isinstance(paths, str) else list(paths)
        return [self.get_image_url(p) for p in items if isinstance(p, str) and p.strip()]

    def need_image_download(self) -> bool:
        """Images served over plain http must go through download_file before a device can show them."""
        return self.base_url().lower().startswith("http://")

    async def download_image(self, path: Any) -> str:
        """
        Displayable location for one image. https URLs come back as is; http URLs are
        fetched through the host's (patched) download_file and resolve to its tempFilePath.

        Raises ImageDownloadError for an empty path, a missing host, a fail callback
        or a non-200 status.
        """
        url = self.get_image_url(path)
        if not url:
            raise ImageDownloadError("Image URL is empty")
        if url.lower().startswith("https://"):
            return url

        download = getattr(self.host, "download_file", None)
        if not callable(download):
            raise ImageDownloadError(
                f"No host download_file to fetch {url}; install the interceptor first",
                code=ErrorCode.HOST_NOT_INSTALLED,
                url=url,
            )

        loop = asyncio.get_running_loop()
        done = loop.create_future()

        def settle(result: Optional[str], error: Optional[Exception]) -> None:
            if done.done():
                return
            if error is not None:
                done.set_exception(error)
            else:
                done.set_result(result)

        def on_success(res: Any) -> None:
            status = res.get("statusCode") if isinstance(res, dict) else None
            if status == 200:
                loop.call_soon_threadsafe(settle, res.get("tempFilePath") or url, None)
                return
            logger.error(f"Image download failed: {url} (status {status})")
            error = ImageDownloadError(f"Download failed with status {status}", url=url, status=status)
            loop.call_soon_threadsafe(settle, None, error)

        def on_fail(err: Any) -> None:
            logger.error(f"Image download failed: {url} ({err})")
            loop.call_soon_threadsafe(settle, None, ImageDownloadError(f"Download failed: {err}", url=url))

        download({"url": url, "success": on_success, "fail": on_fail})
        return await done

    async def load_images(self, paths: Union[str, Iterable[Any], None]) -> List[str]:
        """download_image for every path, in order. The first failed download is raised."""
        return list(await asyncio.gather(*(self.download_image(url) for url in self.get_image_urls(paths))))
