import json

import pytest
from httpx import Response

from datastore_harness import (
    ConfigurationError,
    GraphQLClient,
    GraphQLError,
    HarnessConfig,
)
from datastore_harness.graphql import MUTATIONS, QUERIES


def test_documents_cover_every_model_and_verb():
    assert sorted(MUTATIONS) == sorted(
        f"{verb}{model}"
        for model in ("BasicModel", "Post", "Comment")
        for verb in ("create", "update", "delete")
    )
    assert "mutation CreateComment(" in MUTATIONS["createComment"]
    assert "$input: CreateCommentInput!" in MUTATIONS["createComment"]
    assert "$condition: ModelCommentConditionInput" in MUTATIONS["createComment"]
    assert "getPost(postId: $postId, title: $title)" in QUERIES["getPost"]


@pytest.mark.asyncio
async def test_mutate_sends_document_and_input(graphql_client, mock_graphql):
    route = mock_graphql.post("/graphql").mock(
        return_value=Response(
            200,
            json={"data": {"createBasicModel": {"id": "b1", "body": "hi", "_version": 1}}},
        )
    )

    result = await graphql_client.mutate(
        "createBasicModel", {"id": "b1", "body": "hi", "_version": 0}
    )

    assert result == {"id": "b1", "body": "hi", "_version": 1}
    assert route.call_count == 1
    request = route.calls[0].request
    assert str(request.url) == "https://api.example.test/graphql"
    assert request.headers["x-api-key"] == "test-api-key"

    payload = json.loads(request.content)
    assert payload["query"].startswith("mutation CreateBasicModel(")
    assert payload["variables"] == {
        "input": {"id": "b1", "body": "hi", "_version": 0}
    }
    await graphql_client.close()


@pytest.mark.asyncio
async def test_get_sends_key_variables(graphql_client, mock_graphql):
    route = mock_graphql.post("/graphql").mock(
        return_value=Response(
            200, json={"data": {"getPost": {"postId": "p1", "title": "t"}}}
        )
    )

    post = await graphql_client.get("getPost", postId="p1", title="t")

    assert post == {"postId": "p1", "title": "t"}
    payload = json.loads(route.calls[0].request.content)
    assert payload["variables"] == {"postId": "p1", "title": "t"}
    await graphql_client.close()


@pytest.mark.asyncio
async def test_graphql_errors_raise(graphql_client, mock_graphql):
    errors = [{"message": "Conflict resolver rejects mutation."}]
    mock_graphql.post("/graphql").mock(
        return_value=Response(200, json={"data": None, "errors": errors})
    )

    with pytest.raises(GraphQLError, match="Conflict resolver") as exc_info:
        await graphql_client.mutate("updatePost", {"postId": "p1", "title": "t"})

    assert exc_info.value.errors == errors
    await graphql_client.close()


@pytest.mark.asyncio
async def test_http_failure_raises(graphql_client, mock_graphql):
    mock_graphql.post("/graphql").mock(
        return_value=Response(401, text="UnauthorizedException")
    )

    with pytest.raises(GraphQLError, match="401 - UnauthorizedException"):
        await graphql_client.mutate("deletePost", {"postId": "p1", "title": "t"})
    await graphql_client.close()


@pytest.mark.asyncio
async def test_unknown_operation_makes_no_request(graphql_client, mock_graphql):
    with pytest.raises(GraphQLError, match="Unknown mutation"):
        await graphql_client.mutate("upsertPost", {})
    with pytest.raises(GraphQLError, match="Unknown query"):
        await graphql_client.get("listPosts")

    assert len(mock_graphql.calls) == 0


def test_missing_endpoint(monkeypatch):
    monkeypatch.delenv("GRAPHQL_ENDPOINT", raising=False)
    with pytest.raises(ConfigurationError, match="GRAPHQL_ENDPOINT"):
        GraphQLClient.from_env()


def test_from_config_uses_endpoint_and_key():
    config = HarnessConfig(
        graphql_endpoint="https://config.example.test/graphql",
        graphql_api_key="config-key",
    )
    client = GraphQLClient.from_config(config)

    assert client.endpoint == "https://config.example.test/graphql"
    assert client._api_key == "config-key"


def test_from_config_without_endpoint():
    with pytest.raises(ConfigurationError, match="GRAPHQL_ENDPOINT"):
        GraphQLClient.from_config(HarnessConfig())
