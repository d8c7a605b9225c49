"""HTTP client for the InfoFlow GraphQL API."""

import logging
import threading
from typing import Any
from urllib.parse import urljoin

import requests

from .models import Item

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.infoflow.com/graphql"

# Format requested for highlight and article bodies.
HIGHLIGHT_FORMAT = "highlightedMarkdown"

SEARCH_QUERY = """
query Search(
  $after: String
  $first: Int
  $query: String
  $includeContent: Boolean
  $format: String
) {
  search(
    first: $first
    after: $after
    query: $query
    includeContent: $includeContent
    format: $format
  ) {
    ... on SearchSuccess {
      edges {
        node {
          id
          title
          url
          originalUrl
          siteName
          author
          type: pageType
          state
          content
          description
          note: annotation
          image
          dateSaved: savedAt
          datePublished: publishedAt
          dateRead: readAt
          dateArchived: archivedAt
          updatedAt
          wordsCount
          readLength: readingProgressPercent
          labels {
            name
            color
          }
          highlights {
            highlightID: id
            text: quote
            highlightUrl: url
            note: annotation
            dateHighlighted: updatedAt
            color
            positionPercent: highlightPositionPercent
            positionAnchorIndex: highlightPositionAnchorIndex
            labels {
              name
              color
            }
          }
        }
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
    ... on SearchError {
      errorCodes
    }
  }
}
"""


class InfoFlowAPIError(Exception):
    """The InfoFlow API could not be reached or returned an error.

    Attributes:
        status_code: HTTP status, or ``None`` for connection failures and
            errors reported inside a successful response.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def build_search_query(query: str, since: str | None) -> str:
    """Build the search string: updated-since filter, stable order, user query."""
    parts = []
    if since:
        parts.append(f"updated:{since}")
    parts.append("sort:saved-asc")
    if query and query.strip():
        parts.append(query.strip())
    return " ".join(parts)


class InfoFlowClient:
    def __init__(
        self,
        api_key: str,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: tuple[float, float] | None = (10, 60),
    ):
        self.api_key = api_key
        self.endpoint = endpoint or DEFAULT_ENDPOINT
        self.timeout = timeout
        self._thread_local = threading.local()

    @property
    def session(self) -> requests.Session:
        """The current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers["Authorization"] = f"Bearer {self.api_key}"
        return session

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            return self._get_session().request(
                method, url, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise InfoFlowAPIError(f"Request to {url} failed: {e}") from e

    def _graphql(self, query: str, variables: dict[str, Any]) -> dict:
        """
        POST a GraphQL query and return its ``data`` member.
        """
        response = self._request(
            "POST",
            self.endpoint,
            json={"query": query, "variables": variables},
            headers={"Content-Type": "application/json"},
        )
        if response.status_code != 200:
            raise InfoFlowAPIError(
                f"Error fetching data: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise InfoFlowAPIError(
                f"Invalid JSON response: {e}",
                status_code=response.status_code,
            ) from e

        errors = payload.get("errors")
        if errors:
            messages = "; ".join(
                str(err.get("message", err)) for err in errors
            )
            raise InfoFlowAPIError(f"GraphQL error: {messages}")
        return payload.get("data") or {}

    def fetch_items(
        self,
        after: int = 0,
        size: int = 15,
        since: str | None = None,
        query: str = "",
        include_content: bool = False,
        highlight_format: str = HIGHLIGHT_FORMAT,
    ) -> tuple[list[Item], bool]:
        """
        Fetch one page of items updated since *since*.

        Args:
            after: Offset of the first item of the page.
            size: Page size.
            since: ISO 8601 lower bound on ``updatedAt``; None for everything.
            query: The user's search query (``in:all``...).
            include_content: Whether to fetch full item bodies.
            highlight_format: Body format requested from the server.

        Returns:
            ``(items, has_next_page)``

        Raises:
            InfoFlowAPIError: On transport failure or an error response.
                An empty page is returned as ``([], False)``, never raised.
        """
        data = self._graphql(
            SEARCH_QUERY,
            {
                "after": str(after),
                "first": size,
                "query": build_search_query(query, since),
                "includeContent": include_content,
                "format": highlight_format,
            },
        )
        search = data.get("search") or {}
        if search.get("errorCodes"):
            raise InfoFlowAPIError(
                f"Search failed: {', '.join(search['errorCodes'])}"
            )

        items = [
            Item.model_validate(edge["node"])
            for edge in search.get("edges") or []
        ]
        has_next_page = bool(
            (search.get("pageInfo") or {}).get("hasNextPage", False)
        )
        logger.debug(
            "Fetched %d items (after=%d, has_next_page=%s)",
            len(items),
            after,
            has_next_page,
        )
        return items, has_next_page

    def delete_item(self, item_id: str) -> bool:
        """
        Delete an item on the server.

        Returns:
            True if the item was removed, False if the server did not
            know it.

        Raises:
            InfoFlowAPIError: For any other non-success status.
        """
        url = urljoin(self.endpoint, f"items/{item_id}")
        response = self._request("DELETE", url)
        if response.status_code in (200, 204):
            return True
        if response.status_code == 404:
            return False
        raise InfoFlowAPIError(
            f"Error deleting item: {response.status_code} {response.reason}",
            status_code=response.status_code,
        )

    def download_file(self, url: str) -> bytes:
        """
        Download an item's file (PDF) and return its bytes.
        """
        response = self._request("GET", url)
        if response.status_code != 200:
            raise InfoFlowAPIError(
                f"Error downloading {url}: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )
        return response.content
