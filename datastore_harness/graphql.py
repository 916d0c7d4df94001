import logging
from typing import Any

import httpx

from .config import HarnessConfig
from .datastore import RemoteClient
from .exceptions import ConfigurationError, GraphQLError

logger = logging.getLogger(__name__)

_BASIC_MODEL_FIELDS = """
      id
      body
      createdAt
      updatedAt
      _version
      _deleted
      _lastChangedAt
"""

_POST_FIELDS = """
      postId
      title
      comments {
        items {
          commentId
          content
          postId
          postTitle
          createdAt
          updatedAt
          _version
          _deleted
          _lastChangedAt
        }
        nextToken
        startedAt
      }
      createdAt
      updatedAt
      _version
      _deleted
      _lastChangedAt
"""

_COMMENT_FIELDS = """
      commentId
      content
      post {
        postId
        title
        createdAt
        updatedAt
        _version
        _deleted
        _lastChangedAt
      }
      postId
      postTitle
      createdAt
      updatedAt
      _version
      _deleted
      _lastChangedAt
"""

_SELECTIONS = {
    "BasicModel": _BASIC_MODEL_FIELDS,
    "Post": _POST_FIELDS,
    "Comment": _COMMENT_FIELDS,
}


def _mutation(verb: str, model: str) -> str:
    name = f"{verb}{model}"
    type_name = name[0].upper() + name[1:]
    return (
        f"mutation {type_name}(\n"
        f"  $input: {type_name}Input!\n"
        f"  $condition: Model{model}ConditionInput\n"
        f") {{\n"
        f"  {name}(input: $input, condition: $condition) {{"
        f"{_SELECTIONS[model]}"
        f"  }}\n"
        f"}}\n"
    )


MUTATIONS: dict[str, str] = {
    f"{verb}{model}": _mutation(verb, model)
    for model in _SELECTIONS
    for verb in ("create", "update", "delete")
}

QUERIES: dict[str, str] = {
    "getBasicModel": (
        "query GetBasicModel($id: ID!) {\n"
        f"  getBasicModel(id: $id) {{{_BASIC_MODEL_FIELDS}  }}\n"
        "}\n"
    ),
    "getPost": (
        "query GetPost($postId: ID!, $title: String!) {\n"
        f"  getPost(postId: $postId, title: $title) {{{_POST_FIELDS}  }}\n"
        "}\n"
    ),
    "getComment": (
        "query GetComment($commentId: ID!, $content: String!) {\n"
        f"  getComment(commentId: $commentId, content: $content) {{{_COMMENT_FIELDS}  }}\n"
        "}\n"
    ),
}


class GraphQLClient(RemoteClient):
    """HTTP client for the managed GraphQL endpoint, authenticated with an API key."""

    def __init__(
        self,
        endpoint: str,
        api_key: str | None = None,
        timeout: float = 30.0,
    ):
        self.endpoint = endpoint
        self._api_key = api_key or ""
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: HarnessConfig) -> "GraphQLClient":
        if not config.graphql_endpoint:
            raise ConfigurationError("GRAPHQL_ENDPOINT environment variable not set")
        return cls(config.graphql_endpoint, config.graphql_api_key)

    @classmethod
    def from_env(cls) -> "GraphQLClient":
        return cls.from_config(HarnessConfig.from_env())

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"x-api-key": self._api_key} if self._api_key else {}
            self._client = httpx.AsyncClient(timeout=self._timeout, headers=headers)
        return self._client

    async def execute(
        self, query: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Run a GraphQL document and return its ``data`` object."""
        client = await self._get_client()
        response = await client.post(
            self.endpoint,
            json={"query": query, "variables": variables or {}},
        )

        if not response.is_success:
            raise GraphQLError(
                f"GraphQL request failed: {response.status_code} - {response.text}"
            )

        payload = response.json()
        errors = payload.get("errors")
        if errors:
            messages = "; ".join(e.get("message", str(e)) for e in errors)
            raise GraphQLError(f"GraphQL errors: {messages}", errors=errors)
        return payload.get("data") or {}

    async def mutate(self, operation: str, input: dict[str, Any]) -> dict[str, Any]:
        if operation not in MUTATIONS:
            raise GraphQLError(f"Unknown mutation: {operation}")
        logger.debug("GraphQL: %s", operation)
        data = await self.execute(MUTATIONS[operation], {"input": input})
        return data.get(operation) or {}

    async def get(self, operation: str, **key: Any) -> dict[str, Any] | None:
        if operation not in QUERIES:
            raise GraphQLError(f"Unknown query: {operation}")
        data = await self.execute(QUERIES[operation], key)
        return data.get(operation)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
