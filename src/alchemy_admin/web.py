"""Plain data exchanged between a web server and the admin handlers.

The admin doesn't depend on a web framework: an adapter turns the incoming
request into an `AdminRequest`, awaits `Admin.dispatch` and writes the
returned `Response` back.
"""
import mimetypes
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Mapping, Optional, Union

ROUTE_VAR = re.compile(r'\{(?P<name>\w+)(?::(?P<kind>path))?\}')


@dataclass
class UploadedFile:
    filename: str
    content: bytes
    content_type: str = 'application/octet-stream'


@dataclass
class AdminRequest:
    method: str
    path: str
    token: Optional[str] = None
    form: Mapping[str, str] = field(default_factory=dict)
    files: Mapping[str, UploadedFile] = field(default_factory=dict)
    route_vars: Dict[str, str] = field(default_factory=dict)


@dataclass
class Response:
    status: int = 200
    body: Union[str, bytes] = b''
    headers: Dict[str, str] = field(default_factory=dict)
    # cookie name -> value, `None` asks the client to delete it
    cookies: Dict[str, Optional[str]] = field(default_factory=dict)

    @property
    def location(self) -> Optional[str]:
        return self.headers.get('Location')


def html(body: str, status: int = 200) -> Response:
    return Response(status, body, {'Content-Type': 'text/html; charset=utf-8'})


def redirect(url: str, cookies: Dict[str, Optional[str]] = None) -> Response:
    return Response(302, b'', {'Location': url}, cookies or {})


def not_found(message: str = 'Not Found') -> Response:
    return Response(404, message, {'Content-Type': 'text/plain; charset=utf-8'})


def file_response(content: bytes, filename: str) -> Response:
    content_type, _ = mimetypes.guess_type(filename)
    return Response(200, content, {'Content-Type': content_type or 'application/octet-stream'})


@dataclass
class Route:
    """One URL pattern of the admin, relative to its base path."""
    methods: FrozenSet[str]
    pattern: str
    handler: Callable[..., Awaitable[Response]]
    name: str
    with_context: bool = True
    regex: Any = None

    def __post_init__(self):
        def var(match):
            if match.group('kind') == 'path':
                return f'(?P<{match.group("name")}>.+)'
            return f'(?P<{match.group("name")}>[^/]+)'
        self.regex = re.compile('^' + ROUTE_VAR.sub(var, self.pattern) + '$')

    def match(self, path: str) -> Optional[Dict[str, str]]:
        found = self.regex.match(path)
        return found.groupdict() if found else None
