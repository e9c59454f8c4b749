"""General helpers: networking, parameter parsing, prompts, JWT claims and API errors."""

from __future__ import annotations

import base64
import binascii
import json
import os
import socket
import sys
from dataclasses import dataclass
from typing import Iterable, Optional, Union

import requests

CLUSTERS_PAGE_SIZE = 50
BACKPLANE_API_URL_REGEXP = r"(?mi)^https:\/\/api\.(.*)backplane\.(.*)"
CLUSTER_ID_REGEXP = r"/?backplane/cluster/([a-zA-Z0-9]+)/?"

_KNOWN_SIGNING_METHODS = frozenset(
    {
        "HS256", "HS384", "HS512",
        "RS256", "RS384", "RS512",
        "ES256", "ES384", "ES512",
        "PS256", "PS384", "PS512",
        "EdDSA", "none",
    }
)


def get_free_port() -> int:
    """Ask the operating system for a free TCP port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("localhost", 0))
        return sock.getsockname()[1]


def check_health(url: str) -> bool:
    """Return True only if a GET on url answers with status 200."""
    try:
        response = requests.get(url)
    except (requests.RequestException, ValueError):
        return False
    return response.status_code == 200


def match_base_domain(long_hostname: str, base_domain: str) -> bool:
    """Return True if long_hostname lies within base_domain."""
    if not base_domain:
        return True
    hostname_segments = long_hostname.split(".")
    base_segments = base_domain.split(".")
    if len(hostname_segments) < len(base_segments):
        return False
    return hostname_segments[-len(base_segments):] == base_segments


def parse_params_flag(params: Iterable[str]) -> dict[str, str]:
    """Parse 'key=value' strings into a dict; later keys win."""
    result: dict[str, str] = {}
    for item in params:
        key, *rest = item.split("=")
        if not rest:
            raise ValueError(f"error parsing params flag, {item}")
        result[key.strip()] = "".join(rest).strip()
    return result


def append_uniq_none_empty_string(items: list[str], element: str) -> list[str]:
    """Return items with element appended unless it is empty or already present."""
    if not element or element in items:
        return items
    return [*items, element]


def _is_terminal(stream) -> bool:
    try:
        return stream is not None and stream.isatty()
    except (AttributeError, ValueError, OSError):
        return False


def check_valid_prompt() -> bool:
    """Return True when both stdin and stderr are terminals."""
    return _is_terminal(sys.stdin) and _is_terminal(sys.stderr)


def ask_question_from_prompt(question: str) -> str:
    """Ask question on stderr and read one line; return '' when no prompt is possible."""
    if not check_valid_prompt():
        return ""
    sys.stderr.write(question)
    sys.stderr.flush()
    line = sys.stdin.readline()
    if not line:
        return ""
    return line.rstrip("\r\n")


def is_valid_shell(shell_path: str) -> bool:
    """Return True if the path exists."""
    try:
        os.stat(shell_path)
    except (OSError, ValueError):
        return False
    return True


def _decode_segment(segment: str) -> dict:
    padded = segment + "=" * (-len(segment) % 4)
    raw = base64.urlsafe_b64decode(padded.encode("ascii"))
    value = json.loads(raw)
    if not isinstance(value, dict):
        raise ValueError("segment is not a JSON object")
    return value


def _parse_unverified_claims(token: str) -> dict:
    parts = token.split(".")
    if len(parts) != 3:
        raise ValueError("token contains an invalid number of segments")
    try:
        header = _decode_segment(parts[0])
        claims = _decode_segment(parts[1])
    except (binascii.Error, UnicodeError, json.JSONDecodeError) as err:
        raise ValueError(f"malformed token: {err}") from err
    alg = header.get("alg")
    if not isinstance(alg, str):
        raise ValueError("signing method (alg) is unspecified.")
    if alg not in _KNOWN_SIGNING_METHODS:
        raise ValueError("signing method (alg) is unavailable.")
    return claims


def get_string_field_from_jwt(token: str, field: str) -> str:
    """Return a string claim from an unverified JWT."""
    try:
        claims = _parse_unverified_claims(token)
    except ValueError:
        raise ValueError("failed to parse jwt") from None
    if field not in claims:
        raise ValueError(f"no field {field} on given token")
    claim = claims[field]
    if not isinstance(claim, str):
        raise ValueError(f"field {field} does not contain a string value")
    return claim


def get_username_from_jwt(token: str) -> str:
    """Return the 'username' claim of a JWT, or 'anonymous' if there is none."""
    try:
        claims = _parse_unverified_claims(token)
    except ValueError:
        return "anonymous"
    if "username" not in claims:
        return "anonymous"
    claim = claims["username"]
    if not isinstance(claim, str):
        raise TypeError("username claim is not a string")
    return claim


def get_context_nickname(namespace: str, cluster_nick: str, user_nick: str) -> str:
    """Return the kubeconfig context nickname."""
    user = user_nick.split("/", 1)[0]
    return f"{namespace}/{cluster_nick}/{user}"


@dataclass
class BackplaneAPIError:
    """Error body returned by the backplane API."""

    message: Optional[str] = None
    status_code: Optional[int] = None


def parse_backplane_api_error(
    status_code: int, status: str, body: Union[bytes, str]
) -> BackplaneAPIError:
    """Parse an API error body; raise ValueError with response details if it is not valid."""
    body_text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    try:
        data = json.loads(body_text)
        if data is None:
            return BackplaneAPIError()
        if not isinstance(data, dict):
            raise ValueError("cannot unmarshal non-object into error")
        message = data.get("message")
        code = data.get("statusCode")
        if message is not None and not isinstance(message, str):
            raise ValueError("field message is not a string")
        if code is not None and (isinstance(code, bool) or not isinstance(code, int)):
            raise ValueError("field statusCode is not an integer")
    except ValueError as err:
        flat = body_text.replace("\n", " ")
        raise ValueError(
            f"status:'{status}', code:'{status_code}'; "
            f"failed to unmarshal response:'{flat}'; {err}"
        ) from err
    return BackplaneAPIError(message=message, status_code=code)


def format_api_error(status_code: int, status: str, body: Union[bytes, str]) -> str:
    """Return a readable description of an API error response."""
    data = parse_backplane_api_error(status_code, status, body)
    if data.message is not None and data.status_code is not None:
        return (
            f"error from backplane: \n Status Code: {data.status_code}\n"
            f" Message: {data.message}"
        )
    return f"error from backplane: \n Status Code: {status_code}\n Message: {status}"