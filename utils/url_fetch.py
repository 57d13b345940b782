from urllib.parse import urlparse

import httpx

from config import settings
from exceptions import FileTooLargeError, URLFetchError


async def fetch_image(url: str) -> bytes:
    """Fetch a source image with redirect and streaming size limits.

    Follows redirects manually (settings.url_fetch_max_redirects hops) so
    every hop gets the same scheme check. The body is streamed and the
    download aborted as soon as it exceeds the size limit.

    Args:
        url: http(s) URL of the source image.

    Returns:
        Raw image bytes.

    Raises:
        URLFetchError: Bad scheme, timeout, non-2xx, redirect limit.
        FileTooLargeError: Response body exceeds max file size.
    """
    _check_scheme(url)
    limit = settings.max_file_size_bytes

    try:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(settings.url_fetch_timeout),
            follow_redirects=False,
        ) as client:
            current_url = url

            for _hop in range(settings.url_fetch_max_redirects + 1):
                async with client.stream("GET", current_url) as response:
                    if response.is_redirect:
                        if response.next_request is None:
                            raise URLFetchError(
                                "Redirect without Location header",
                                url=current_url,
                            )
                        current_url = str(response.next_request.url)
                        _check_scheme(current_url)
                        continue

                    if not response.is_success:
                        raise URLFetchError(
                            f"URL returned HTTP {response.status_code}",
                            url=url,
                            http_status=response.status_code,
                        )

                    content_length = response.headers.get("content-length")
                    if content_length and int(content_length) > limit:
                        raise FileTooLargeError(
                            f"URL content too large: {content_length} bytes",
                            file_size=int(content_length),
                            limit=limit,
                        )

                    body = bytearray()
                    async for chunk in response.aiter_bytes():
                        body.extend(chunk)
                        if len(body) > limit:
                            raise FileTooLargeError(
                                f"URL content exceeds {settings.max_file_size_mb} MB limit",
                                limit=limit,
                            )
                    return bytes(body)

            raise URLFetchError(
                f"Too many redirects (>{settings.url_fetch_max_redirects})",
                url=url,
            )

    except httpx.TimeoutException:
        raise URLFetchError(
            f"URL fetch timed out after {settings.url_fetch_timeout}s",
            url=url,
        )
    except httpx.RequestError as e:
        raise URLFetchError(f"URL fetch failed: {e}", url=url)


def _check_scheme(url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise URLFetchError(f"Unsupported image URL: {url}", url=url)
