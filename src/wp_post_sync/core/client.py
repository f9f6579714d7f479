import logging
import threading
from typing import Any

import requests

from ..config import Config
from ..errors import PostNotFoundError, WordPressApiError
from ..sync.models import Post

logger = logging.getLogger(__name__)

_CONNECT_TIMEOUT = 10


class WordPressClient:
    """Minimal WordPress REST client for the post endpoints.

    Every request asks for ``context=edit`` so raw title, content and
    excerpt are returned; that raw text is what gets cached and hashed.
    """

    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self.base_url = config.base_url.rstrip("/")

    @property
    def session(self) -> requests.Session:
        """Session bound to the calling thread."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers["Accept"] = "application/json"
        session.headers["Authorization"] = (
            f"Bearer {self.config.bearer_token}"
        )
        session.verify = not self.config.insecure
        return session

    def _url(self, path: str) -> str:
        # Works for both /wp-json/wp/v2 and ?rest_route=/wp/v2 bases.
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """
        Send a REST request and decode the JSON response.

        Raises:
            WordPressApiError: For non-2xx responses or an undecodable body.
            requests.RequestException: For transport failures.
        """
        query: dict[str, Any] = {"context": "edit"}
        if params:
            query.update(params)

        url = self._url(path)
        logger.debug("%s %s %s", method, url, query)
        response = self._get_session().request(
            method,
            url,
            params=query,
            json=json_body,
            timeout=(_CONNECT_TIMEOUT, self.config.timeout),
        )

        if not response.ok:
            raise WordPressApiError(response.status_code, response.text)

        if not response.content:
            raise WordPressApiError(
                response.status_code,
                message="WordPress API returned an empty response body",
            )
        try:
            return response.json()
        except ValueError:
            raise WordPressApiError(
                response.status_code,
                response.text,
                "Failed to decode WordPress API response",
            ) from None

    def list_posts(
        self,
        status: str | None = None,
        per_page: int | None = None,
        page: int | None = None,
    ) -> list[Post]:
        """
        List posts, newest first.

        Args:
            status: Status filter (e.g. "publish", "draft"); all when None.
            per_page: Page size (WordPress caps this at 100).
            page: 1-based page number.

        Returns:
            List of Post models.

        Raises:
            WordPressApiError: If the server rejects the request.
        """
        params: dict[str, Any] = {}
        if status:
            params["status"] = status
        if per_page is not None:
            params["per_page"] = per_page
        if page is not None:
            params["page"] = page

        result = self._request("GET", "posts", params=params)
        if not isinstance(result, list):
            raise WordPressApiError(
                None, message="Expected a list of posts from WordPress API"
            )
        return [Post.model_validate(item) for item in result]

    def get_post(self, post_id: int) -> Post:
        """
        Get a single post by id.

        Raises:
            PostNotFoundError: If the post does not exist.
            WordPressApiError: For any other error response.
        """
        try:
            result = self._request("GET", f"posts/{post_id}")
        except WordPressApiError as err:
            if err.status_code == 404:
                raise PostNotFoundError(post_id, err.body) from None
            raise
        return Post.model_validate(result)

    def update_post(self, post_id: int, fields: dict[str, Any]) -> Post:
        """
        Partially update a post.

        Args:
            post_id: Post to update.
            fields: Only the fields to change, in REST request shape
                (e.g. {"content": "...", "title": "..."}).

        Returns:
            The post as stored by the server after the update.

        Raises:
            PostNotFoundError: If the post does not exist.
            WordPressApiError: For any other error response.
        """
        try:
            result = self._request(
                "PATCH", f"posts/{post_id}", json_body=fields
            )
        except WordPressApiError as err:
            if err.status_code == 404:
                raise PostNotFoundError(post_id, err.body) from None
            raise
        return Post.model_validate(result)

    def create_post(self, fields: dict[str, Any]) -> Post:
        """
        Create a post.

        Args:
            fields: REST request body, e.g. {"title": ..., "content": ...,
                "status": "draft"}.

        Returns:
            The post as stored by the server, including its new id.

        Raises:
            WordPressApiError: If the server rejects the request.
        """
        result = self._request("POST", "posts", json_body=fields)
        return Post.model_validate(result)

    def delete_post(self, post_id: int, force: bool = True) -> dict[str, Any]:
        """
        Delete a post, or move it to the trash when *force* is False.

        Returns:
            The server's response body (``{"deleted": ..., "previous": ...}``
            when forced, the trashed post otherwise).

        Raises:
            PostNotFoundError: If the post does not exist.
            WordPressApiError: For any other error response.
        """
        params = {"force": "true"} if force else None
        try:
            result = self._request("DELETE", f"posts/{post_id}", params=params)
        except WordPressApiError as err:
            if err.status_code == 404:
                raise PostNotFoundError(post_id, err.body) from None
            raise
        if not isinstance(result, dict):
            raise WordPressApiError(
                None, message="Expected an object from WordPress API"
            )
        return result
