from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from http.client import HTTPException
from typing import Any, Protocol, cast
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

LOGGER = logging.getLogger("tube_clone.innertube")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
)
SEARCH_PARAMS_VIDEOS_ONLY = "EgIQAQ=="


class YouTubeServiceError(Exception):
    pass


class InnerTubeRequestError(YouTubeServiceError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InnerTubeResponseError(YouTubeServiceError):
    pass


class ResourceNotFoundError(YouTubeServiceError):
    pass


class InnerTubeApi(Protocol):
    """The four InnerTube endpoints the service layer depends on."""

    def search(
        self,
        query: str | None = None,
        *,
        params: str | None = None,
        continuation: str | None = None,
    ) -> dict[str, Any]: ...

    def next(
        self,
        video_id: str | None = None,
        *,
        continuation: str | None = None,
    ) -> dict[str, Any]: ...

    def player(self, video_id: str) -> dict[str, Any]: ...

    def browse(
        self,
        browse_id: str | None = None,
        *,
        params: str | None = None,
        continuation: str | None = None,
    ) -> dict[str, Any]: ...


@dataclass(frozen=True)
class InnerTubeClient:
    """
    Minimal InnerTube JSON client.

    Every request posts the client context (name, version, language, region)
    together with the endpoint specific body and returns the decoded JSON object.
    """

    base_url: str
    client_name: str
    client_version: str
    language: str = "en"
    region: str = "US"
    api_key: str | None = None
    timeout_seconds: float = 15.0
    user_agent: str = DEFAULT_USER_AGENT

    def with_locale(self, *, language: str, region: str) -> InnerTubeClient:
        return replace(self, language=language, region=region)

    def search(
        self,
        query: str | None = None,
        *,
        params: str | None = None,
        continuation: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if continuation:
            body["continuation"] = continuation
        else:
            body["query"] = query or ""
            if params:
                body["params"] = params
        return self._post("search", body)

    def next(
        self,
        video_id: str | None = None,
        *,
        continuation: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if continuation:
            body["continuation"] = continuation
        elif video_id:
            body["videoId"] = video_id
        return self._post("next", body)

    def player(self, video_id: str) -> dict[str, Any]:
        return self._post(
            "player",
            {
                "videoId": video_id,
                "contentCheckOk": True,
                "racyCheckOk": True,
            },
        )

    def browse(
        self,
        browse_id: str | None = None,
        *,
        params: str | None = None,
        continuation: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if continuation:
            body["continuation"] = continuation
        else:
            body["browseId"] = browse_id or ""
            if params:
                body["params"] = params
        return self._post("browse", body)

    def _context(self) -> dict[str, Any]:
        return {
            "client": {
                "clientName": self.client_name,
                "clientVersion": self.client_version,
                "hl": self.language,
                "gl": self.region,
                "userAgent": self.user_agent,
            }
        }

    def _post(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        payload = {"context": self._context(), **body}
        query_params = {"prettyPrint": "false"}
        if self.api_key:
            query_params["key"] = self.api_key
        request = Request(
            f"{self.base_url}/{endpoint}?{urlencode(query_params)}",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "content-type": "application/json",
                "accept": "application/json",
                "accept-language": f"{self.language}-{self.region},{self.language};q=0.9",
                "user-agent": self.user_agent,
                "x-youtube-client-name": _client_name_header(self.client_name),
                "x-youtube-client-version": self.client_version,
                "origin": "https://www.youtube.com",
            },
            method="POST",
        )

        status_code = 0
        raw_body = ""
        try:
            with urlopen(request, timeout=self.timeout_seconds) as response:
                status_code = int(response.getcode() or 0)
                raw_body = response.read().decode("utf-8", errors="replace")
        except HTTPError as exc:
            status_code = int(exc.code)
            raw_body = exc.read().decode("utf-8", errors="replace")
        except (URLError, TimeoutError, OSError, HTTPException) as exc:
            raise InnerTubeRequestError(f"InnerTube {endpoint} request failed: {exc}") from exc

        if status_code < 200 or status_code >= 300:
            message = _extract_error_message(raw_body) or f"HTTP {status_code}"
            LOGGER.warning(
                "innertube request rejected endpoint=%s status=%s message=%s",
                endpoint,
                status_code,
                message,
            )
            raise InnerTubeRequestError(
                f"InnerTube {endpoint} request failed: {message}",
                status_code=status_code,
            )
        return _parse_json_object(raw_body, endpoint=endpoint)


def _client_name_header(client_name: str) -> str:
    # Numeric ids InnerTube expects in the X-YouTube-Client-Name header.
    known = {"WEB": "1", "MWEB": "2", "ANDROID": "3", "IOS": "5", "TVHTML5": "7"}
    return known.get(client_name.upper(), "1")


def _parse_json_object(raw_body: str, *, endpoint: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw_body)
    except json.JSONDecodeError as exc:
        raise InnerTubeResponseError(f"InnerTube {endpoint} returned invalid JSON") from exc
    if not isinstance(parsed, dict):
        raise InnerTubeResponseError(f"InnerTube {endpoint} returned a non-object payload")
    return cast(dict[str, Any], parsed)


def _extract_error_message(raw_body: str) -> str | None:
    try:
        parsed = json.loads(raw_body)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    error = cast(dict[str, Any], parsed).get("error")
    if isinstance(error, dict):
        message = cast(dict[str, Any], error).get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None
