"""
telegra.ph client for publishing html reports.

The Telegraph API does not take html directly: page content is a JSON array
of nodes, where a node is either a string or
``{"tag": ..., "attrs": {...}, "children": [...]}``. `html_to_nodes` does the
conversion for the small subset of html the report renderer emits.
"""

import json
from html.parser import HTMLParser
from typing import Any, Dict, List, Union

import requests

from balog.errors import CollaboratorError

TELEGRAPH_API_URL = "https://api.telegra.ph"
TELEGRAPH_PAGE_URL = "https://telegra.ph"
REQUEST_TIMEOUT_SECONDS = 30

VOID_TAGS = {"br", "hr", "img"}

Node = Union[str, Dict[str, Any]]


class _NodeBuilder(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.root: List[Node] = []
        self._stack: List[Dict[str, Any]] = []

    def _append(self, node: Node):
        if self._stack:
            self._stack[-1].setdefault("children", []).append(node)
        else:
            self.root.append(node)

    def handle_starttag(self, tag, attrs):
        node: Dict[str, Any] = {"tag": tag}
        kept = {k: v for k, v in attrs if k in ("href", "src") and v is not None}
        if kept:
            node["attrs"] = kept
        self._append(node)
        if tag not in VOID_TAGS:
            self._stack.append(node)

    def handle_startendtag(self, tag, attrs):
        self.handle_starttag(tag, attrs)
        if tag not in VOID_TAGS:
            self._stack.pop()

    def handle_endtag(self, tag):
        # close up to the matching tag; stray end tags are ignored
        for i in range(len(self._stack) - 1, -1, -1):
            if self._stack[i]["tag"] == tag:
                del self._stack[i:]
                return

    def handle_data(self, data):
        if data:
            self._append(data)


def html_to_nodes(html: str) -> List[Node]:
    builder = _NodeBuilder()
    builder.feed(html)
    builder.close()
    return builder.root


class TelegraphClient:
    def __init__(self, access_token: str, timeout: float = REQUEST_TIMEOUT_SECONDS):
        self.access_token = access_token
        self.timeout = timeout

    @staticmethod
    def _call(method: str, data: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        try:
            resp = requests.post(f"{TELEGRAPH_API_URL}/{method}", data=data, timeout=timeout)
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise CollaboratorError(f"telegraph {method} failed: {e}") from e

        if not payload.get("ok"):
            raise CollaboratorError(f"telegraph {method} failed: {payload.get('error')}")
        return payload["result"]

    @classmethod
    def create(
        cls,
        short_name: str,
        author_name: str = "",
        author_url: str = "",
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> "TelegraphClient":
        """Create a new telegraph account and return a client holding its access token."""
        result = cls._call(
            "createAccount",
            {"short_name": short_name, "author_name": author_name, "author_url": author_url},
            timeout,
        )
        return cls(result["access_token"], timeout=timeout)

    def create_page_with_html(
        self,
        title: str,
        author_name: str,
        author_url: str,
        html: str,
        return_content: bool = False,
    ) -> str:
        """Publish `html` as a new page and return its public url."""
        result = self._call(
            "createPage",
            {
                "access_token": self.access_token,
                "title": title,
                "author_name": author_name,
                "author_url": author_url,
                "content": json.dumps(html_to_nodes(html), ensure_ascii=False),
                "return_content": "true" if return_content else "false",
            },
            self.timeout,
        )
        return result.get("url") or f"{TELEGRAPH_PAGE_URL}/{result['path']}"


def publisher(access_token: str):
    """Return a (title, author_name, author_url, html) -> url callable."""
    client = TelegraphClient(access_token)

    def publish(title: str, author_name: str, author_url: str, html: str) -> str:
        return client.create_page_with_html(title, author_name, author_url, html)
    return publish
