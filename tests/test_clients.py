"""Tests for the HTTP embedding and generation clients."""

from unittest.mock import Mock, patch

import pytest
import requests

from ondevice_rag.embedding import EmbeddingClient
from ondevice_rag.errors import EmbeddingError, GenerationError, ModelLoadError
from ondevice_rag.generation import GenerationClient
from ondevice_rag.providers import GenerationOptions

EMBED_URL = "http://localhost:8080/v1/embeddings"
COMPLETE_URL = "http://localhost:8081/v1/completions"


def embedding_response(vectors):
    response = Mock()
    response.raise_for_status.return_value = None
    response.json.return_value = {
        "data": [{"index": i, "embedding": v} for i, v in enumerate(vectors)]
    }
    return response


def completion_response(text):
    response = Mock()
    response.raise_for_status.return_value = None
    response.json.return_value = {"choices": [{"text": text}]}
    return response


@pytest.mark.unit
class TestEmbeddingClient:

    def test_embed_posts_openai_payload(self):
        client = EmbeddingClient(EMBED_URL, model_name="bge-small", api_key="sk-local")

        with patch("ondevice_rag.embedding.client.requests.post",
                   return_value=embedding_response([[0.1, 0.2]])) as post:
            vector = client.embed("hello")

        assert vector == [0.1, 0.2]
        args, kwargs = post.call_args
        assert args[0] == EMBED_URL
        assert kwargs["json"] == {"input": ["hello"], "model": "bge-small"}
        assert kwargs["headers"]["Authorization"] == "Bearer sk-local"
        assert kwargs["timeout"] == 60

    def test_embed_batch_splits_requests(self):
        client = EmbeddingClient(EMBED_URL, model_name="m", batch_size=2)
        responses = [
            embedding_response([[1.0], [2.0]]),
            embedding_response([[3.0]]),
        ]

        with patch("ondevice_rag.embedding.client.requests.post", side_effect=responses) as post:
            vectors = client.embed_batch(["a", "b", "c"])

        assert vectors == [[1.0], [2.0], [3.0]]
        assert post.call_count == 2
        assert client.embedding_dim == 1

    def test_response_reordered_by_index(self):
        client = EmbeddingClient(EMBED_URL, model_name="m")
        response = Mock()
        response.json.return_value = {"data": [
            {"index": 1, "embedding": [2.0]},
            {"index": 0, "embedding": [1.0]},
        ]}

        with patch("ondevice_rag.embedding.client.requests.post", return_value=response):
            assert client.embed_batch(["a", "b"]) == [[1.0], [2.0]]

    def test_retries_then_succeeds(self):
        client = EmbeddingClient(EMBED_URL, model_name="m", max_retries=3)
        side_effect = [requests.ConnectionError("refused"), embedding_response([[1.0]])]

        with patch("ondevice_rag.embedding.client.requests.post", side_effect=side_effect) as post:
            assert client.embed("a") == [1.0]

        assert post.call_count == 2

    def test_gives_up_after_max_retries(self):
        client = EmbeddingClient(EMBED_URL, model_name="m", max_retries=2)

        with patch("ondevice_rag.embedding.client.requests.post",
                   side_effect=requests.Timeout("slow")) as post:
            with pytest.raises(EmbeddingError) as exc_info:
                client.embed("a")

        assert post.call_count == 2
        assert isinstance(exc_info.value.original_error, requests.Timeout)

    def test_malformed_response(self):
        client = EmbeddingClient(EMBED_URL, model_name="m")
        response = Mock()
        response.json.return_value = {"error": "model not loaded"}

        with patch("ondevice_rag.embedding.client.requests.post", return_value=response):
            with pytest.raises(EmbeddingError):
                client.embed("a")

    def test_vector_count_mismatch(self):
        client = EmbeddingClient(EMBED_URL, model_name="m")

        with patch("ondevice_rag.embedding.client.requests.post",
                   return_value=embedding_response([[1.0]])):
            with pytest.raises(EmbeddingError):
                client.embed_batch(["a", "b"])

    def test_load_checks_dimension(self):
        client = EmbeddingClient(EMBED_URL, model_name="m", expected_dim=3)

        with patch("ondevice_rag.embedding.client.requests.post",
                   return_value=embedding_response([[1.0, 2.0]])):
            with pytest.raises(ModelLoadError):
                client.load()

    def test_load_success_records_dimension(self):
        client = EmbeddingClient(EMBED_URL, model_name="m", expected_dim=2)

        with patch("ondevice_rag.embedding.client.requests.post",
                   return_value=embedding_response([[1.0, 2.0]])):
            client.load()

        assert client.get_info()["embedding_dim"] == 2

    def test_load_unreachable_server(self):
        client = EmbeddingClient(EMBED_URL, model_name="m", max_retries=1)

        with patch("ondevice_rag.embedding.client.requests.post",
                   side_effect=requests.ConnectionError("refused")):
            with pytest.raises(ModelLoadError) as exc_info:
                client.load()

        assert isinstance(exc_info.value.original_error, requests.ConnectionError)


@pytest.mark.unit
class TestGenerationClient:

    def test_generate_sends_sampling_parameters(self):
        client = GenerationClient(COMPLETE_URL, model_name="qwen2.5-0.5b")
        options = GenerationOptions(max_tokens=64, temperature=0.2, top_p=0.8, top_k=20, stop=("\n\n",))

        with patch("ondevice_rag.generation.client.requests.post",
                   return_value=completion_response(" Paris")) as post:
            answer = client.generate("Capital of France?", options)

        assert answer == " Paris"
        payload = post.call_args.kwargs["json"]
        assert payload == {
            "model": "qwen2.5-0.5b",
            "prompt": "Capital of France?",
            "max_tokens": 64,
            "temperature": 0.2,
            "top_p": 0.8,
            "top_k": 20,
            "stop": ["\n\n"],
        }

    def test_no_stop_field_when_empty(self):
        client = GenerationClient(COMPLETE_URL, model_name="m")

        with patch("ondevice_rag.generation.client.requests.post",
                   return_value=completion_response("x")) as post:
            client.generate("p", GenerationOptions())

        assert "stop" not in post.call_args.kwargs["json"]

    def test_http_error_message_is_kept(self):
        client = GenerationClient(COMPLETE_URL, model_name="m", max_retries=1)
        response = Mock()
        response.raise_for_status.side_effect = requests.HTTPError("500 Server Error: context overflow")

        with patch("ondevice_rag.generation.client.requests.post", return_value=response):
            with pytest.raises(GenerationError) as exc_info:
                client.generate("p", GenerationOptions())

        assert exc_info.value.message == "500 Server Error: context overflow"

    def test_malformed_response(self):
        client = GenerationClient(COMPLETE_URL, model_name="m")
        response = Mock()
        response.json.return_value = {"choices": []}

        with patch("ondevice_rag.generation.client.requests.post", return_value=response):
            with pytest.raises(GenerationError):
                client.generate("p", GenerationOptions())

    def test_load_without_health_url_makes_no_request(self):
        client = GenerationClient(COMPLETE_URL, model_name="m")

        with patch("ondevice_rag.generation.client.requests.get") as get:
            client.load()

        get.assert_not_called()

    def test_load_checks_health_url(self):
        client = GenerationClient(COMPLETE_URL, model_name="m", health_url="http://localhost:8081/health")

        with patch("ondevice_rag.generation.client.requests.get",
                   side_effect=requests.ConnectionError("refused")):
            with pytest.raises(ModelLoadError):
                client.load()
