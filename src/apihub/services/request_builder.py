"""Assemble outbound HTTP requests for endpoint test calls.

Everything here is synchronous and side-effect free apart from decrypting the
provider credential. Validation failures raise ``RequestBuildError``
subclasses before any network activity.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from apihub.crypto import decrypt_secret
from apihub.errors import (
    InvalidEnumValueError,
    MissingPathParameterError,
    RequestBuildError,
)

if TYPE_CHECKING:
    from apihub.db.tables import Api, Endpoint

PATH_PLACEHOLDER = re.compile(r":(\w+)")

# Relative results are resolved against this so a malformed base URL still parses.
PLACEHOLDER_BASE = httpx.URL("http://localhost")

# encodeURIComponent leaves these unescaped in addition to "-_.~".
_COMPONENT_SAFE = "!*'()"


@dataclass
class ParameterBundle:
    """Caller-supplied values for one test call."""

    query_params: dict[str, Any] = field(default_factory=dict)
    body_params: dict[str, Any] = field(default_factory=dict)
    headers: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class OutboundRequest:
    """A fully resolved request, ready to send."""

    method: str
    url: httpx.URL
    headers: httpx.Headers
    json_body: dict[str, Any] | None = None
    form_fields: list[tuple[str, str]] | None = None

    def to_httpx(self) -> httpx.Request:
        if self.form_fields is not None:
            return httpx.Request(
                self.method,
                self.url,
                headers=self.headers,
                files=[(name, (None, value)) for name, value in self.form_fields],
            )
        if self.json_body is not None:
            return httpx.Request(
                self.method, self.url, headers=self.headers, json=self.json_body
            )
        return httpx.Request(self.method, self.url, headers=self.headers)


def render_value(value: Any) -> str:
    """
    Render a parameter value the way it appears in a URL or form field.

    Lists are comma-joined and objects are sent as JSON.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ",".join(render_value(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def join_url(base_url: str, path: str) -> str:
    """Join with exactly one separating slash."""
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def substitute_path(
    path: str, query_params: dict[str, Any], body_params: dict[str, Any]
) -> str:
    """
    Replace ``:name`` placeholders in ``path`` left to right.

    Each value is looked up in ``query_params`` then ``body_params``. A name
    may repeat in the template; once every placeholder is resolved the
    names are removed from both maps so they are not sent again.

    Raises:
        MissingPathParameterError: for the first placeholder with no value.
    """
    resolved: dict[str, str] = {}

    def _resolve(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in resolved:
            value = query_params.get(name)
            if value is None:
                value = body_params.get(name)
            if value is None:
                raise MissingPathParameterError(name)
            resolved[name] = quote(render_value(value), safe=_COMPONENT_SAFE)
        return resolved[name]

    substituted = PATH_PLACEHOLDER.sub(_resolve, path)
    for name in resolved:
        query_params.pop(name, None)
        body_params.pop(name, None)
    return substituted


def parse_url(raw: str) -> httpx.URL:
    try:
        url = httpx.URL(raw)
        if url.is_absolute_url:
            return url
        return PLACEHOLDER_BASE.join(raw)
    except httpx.InvalidURL as exc:
        raise RequestBuildError(f"Invalid endpoint URL: {exc}") from exc


def _parameter_schemas(
    specs: Iterable[Mapping[str, Any]] | None,
) -> dict[str, Mapping[str, Any]]:
    return {spec["name"]: spec for spec in specs or () if spec.get("name")}


def check_enum(name: str, value: Any, spec: Mapping[str, Any] | None) -> None:
    if spec is None or spec.get("type") != "enum":
        return
    allowed = spec.get("enum_values")
    if not allowed:
        return
    if render_value(value) not in {str(option) for option in allowed}:
        raise InvalidEnumValueError(name, value)


def merge_headers(
    declared: Iterable[Mapping[str, Any]] | None,
    supplied: Iterable[tuple[str, str]],
) -> httpx.Headers:
    """Static endpoint headers first, then caller headers (caller wins)."""
    headers = httpx.Headers()
    for spec in declared or ():
        name = spec.get("name")
        value = spec.get("value")
        if name and value is not None:
            headers[name] = str(value)
    for name, value in supplied:
        headers[name] = value
    return headers


def build_outbound_request(
    api: Api,
    endpoint: Endpoint,
    bundle: ParameterBundle,
    *,
    decrypt: Callable[[str], str] = decrypt_secret,
) -> OutboundRequest:
    """
    Build the outbound request for a test call.

    Args:
        api: Owning API (base URL and provider auth descriptor)
        endpoint: Endpoint definition
        bundle: Caller-supplied parameters; not mutated
        decrypt: Turns the stored provider key token into plaintext

    Returns:
        OutboundRequest

    Raises:
        MissingPathParameterError: a path placeholder has no value
        InvalidEnumValueError: a query value is outside its declared enum
        CorruptCiphertextError: the stored provider key cannot be decrypted
    """
    query_params = dict(bundle.query_params)
    body_params = dict(bundle.body_params)
    method = endpoint.method.upper()

    path = substitute_path(endpoint.path, query_params, body_params)
    url = parse_url(join_url(api.base_url, path))

    headers = merge_headers(endpoint.headers, bundle.headers)

    schemas = _parameter_schemas(endpoint.query_parameters)
    for name, value in query_params.items():
        check_enum(name, value, schemas.get(name))
        url = url.copy_set_param(name, render_value(value))

    # The stored credential is applied last so caller input cannot replace it.
    if (
        api.provider_auth_type == "apiKey"
        and api.provider_auth_location
        and api.provider_auth_field
        and api.provider_auth_key
    ):
        provider_key = decrypt(api.provider_auth_key)
        if api.provider_auth_location == "query":
            url = url.copy_set_param(api.provider_auth_field, provider_key)
        else:
            headers[api.provider_auth_field] = provider_key

    request = OutboundRequest(method=method, url=url, headers=headers)
    if method == "GET":
        return request

    if endpoint.body_content_type == "form-data":
        # httpx generates the multipart boundary; a caller Content-Type would hide it.
        headers.pop("content-type", None)
        request.form_fields = [
            (name, render_value(value)) for name, value in body_params.items()
        ]
    else:
        if "content-type" not in headers:
            headers["Content-Type"] = "application/json"
        request.json_body = body_params
    return request
