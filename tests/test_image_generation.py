import pytest

from services import image_generation
from services.image_generation import GenerationError, ImageGenerationClient
from conftest import FakeResponse


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []
        self.headers = {}

    def post(self, url, json, timeout):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        return self.responses.pop(0)


def make_client(*responses):
    client = ImageGenerationClient("secret", "https://forge.example.com///", timeout=9)
    client.session = FakeSession(responses)
    return client


def test_requires_key_and_url():
    with pytest.raises(GenerationError):
        ImageGenerationClient(None, "https://forge.example.com")
    with pytest.raises(GenerationError):
        ImageGenerationClient("secret", "")


def test_session_uses_bearer_auth():
    client = ImageGenerationClient("secret", "https://forge.example.com/")
    assert client.session.headers["Authorization"] == "Bearer secret"
    assert client.base_url == "https://forge.example.com"


def test_generate_image_reads_data_list():
    client = make_client(FakeResponse({"data": [{"url": "https://img/1.png", "seed": 42}]}))

    result = client.generate_image("a fox", width=512, height=768)

    assert result.to_dict() == {"image_url": "https://img/1.png", "seed": 42, "prompt": "a fox"}
    call = client.session.calls[0]
    assert call["url"] == "https://forge.example.com/v1/images/generate"
    assert call["timeout"] == 9
    assert call["json"] == {
        "prompt": "a fox",
        "width": 512,
        "height": 768,
        "num_inference_steps": 30,
        "guidance_scale": 7.5,
        "seed": None,
    }


def test_generate_image_flat_response_and_random_seed():
    client = make_client(FakeResponse({"url": "https://img/2.png"}))
    result = client.generate_image("a fox")
    assert result.image_url == "https://img/2.png"
    assert isinstance(result.seed, int)


def test_missing_url_is_an_error():
    client = make_client(FakeResponse({"data": []}))
    with pytest.raises(GenerationError, match="No image URL"):
        client.generate_image("a fox")


def test_http_errors_carry_status_and_message():
    client = make_client(FakeResponse({"message": "quota exceeded"}, status_code=429))
    with pytest.raises(GenerationError, match="429 - quota exceeded"):
        client.generate_image("a fox")


def test_transparent_prompt_suffix():
    client = make_client(FakeResponse({"url": "https://img/3.png", "seed": 1}))
    result = client.generate_transparent_image("retro sunset")
    assert result.prompt == "retro sunset, transparent background, PNG, no background, isolated design"


def test_generate_images_keeps_order(monkeypatch):
    client = ImageGenerationClient("secret", "https://forge.example.com")

    def fake_generate(prompt, **options):
        return image_generation.GeneratedImage(f"https://img/{prompt}.png", 1, prompt)

    monkeypatch.setattr(client, "generate_image", fake_generate)

    results = client.generate_images(["a", "b", "c"], width=256)

    assert [r.prompt for r in results] == ["a", "b", "c"]


def test_get_image_client_rejects_unknown_provider(monkeypatch):
    monkeypatch.setattr(image_generation, "_client", None)
    monkeypatch.setattr(image_generation.config, "IMAGE_PROVIDER", "dalle")
    with pytest.raises(GenerationError):
        image_generation.get_image_client()


@pytest.mark.parametrize("response", [
    FakeResponse(None),
    FakeResponse(["https://img/1.png"]),
    FakeResponse({"data": "https://img/1.png"}),
], ids=["not-json", "list-body", "data-not-a-list"])
def test_malformed_success_body_is_a_generation_error(response):
    client = make_client(response)
    with pytest.raises(GenerationError, match="Invalid response"):
        client.generate_image("a fox")
