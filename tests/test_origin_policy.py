import pytest

from pawsquare.config import Settings
from pawsquare.services.origin_policy import allowed_origins, cors_headers, is_origin_allowed


@pytest.fixture
def settings() -> Settings:
    return Settings(BACKEND_URL="https://abcd1234.supabase.co", ALLOWED_ORIGIN="https://pawsquare.example")


def test_allowed_origins_include_static_and_derived_domains(settings):
    assert allowed_origins(settings) == [
        "https://lovable.dev",
        "https://www.lovable.dev",
        "https://abcd1234.lovable.app",
        "https://abcd1234.supabase.co",
        "https://pawsquare.example",
    ]


def test_allowed_origins_without_backend_url_are_static_only():
    bare = Settings(BACKEND_URL="", ALLOWED_ORIGIN=None)
    assert allowed_origins(bare) == ["https://lovable.dev", "https://www.lovable.dev"]


@pytest.mark.parametrize(
    "origin",
    [
        "https://foo.lovable.app",
        "https://preview-42.lovable.dev",
        "https://www.lovable.dev",
        "https://abcd1234.supabase.co",
        "https://pawsquare.example",
    ],
)
def test_trusted_origins_are_echoed(settings, origin):
    assert is_origin_allowed(origin, settings) is True
    assert cors_headers(origin, settings)["Access-Control-Allow-Origin"] == origin


@pytest.mark.parametrize(
    "origin",
    [
        "https://evil.example.com",
        "https://lovable.app.evil.com",
        "https://other.supabase.co",
        None,
        "",
    ],
)
def test_untrusted_origins_fall_back_to_first_static_origin(settings, origin):
    assert is_origin_allowed(origin, settings) is False
    assert cors_headers(origin, settings)["Access-Control-Allow-Origin"] == "https://lovable.dev"


def test_cors_headers_list_methods_and_headers(settings):
    headers = cors_headers("https://foo.lovable.app", settings)
    assert headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"
    assert headers["Access-Control-Allow-Headers"] == "authorization, x-client-info, apikey, content-type"
