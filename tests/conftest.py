from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from backend.repurposer.dependencies import reset_cached_dependencies
from backend.repurposer.main import create_app


@pytest.fixture(autouse=True)
def _isolated_env(  # pyright: ignore[reportUnusedFunction]
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Iterator[None]:
    data_dir = tmp_path / "runtime-data"
    data_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.chdir(tmp_path)
    for name in (
        "OPENAI_API_KEY",
        "AI_MODEL_PRIMARY",
        "AI_MODEL_FALLBACK",
        "REPURPOSER_OPENAI_API_KEY",
        "REPURPOSER_AI_MODEL_PRIMARY",
        "REPURPOSER_AI_MODEL_FALLBACK",
        "REPURPOSER_ENVIRONMENT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("REPURPOSER_DATA_DIR", str(data_dir))
    monkeypatch.setenv("REPURPOSER_TELEMETRY_ENABLED", "0")
    reset_cached_dependencies()
    yield
    reset_cached_dependencies()


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    monkeypatch.setenv("OPENAI_API_KEY", "test-openai-key")
    monkeypatch.setenv("AI_MODEL_PRIMARY", "test/primary-model")
    monkeypatch.setenv("AI_MODEL_FALLBACK", "test/fallback-model")
    reset_cached_dependencies()

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    reset_cached_dependencies()


def _article_html(*, paragraphs: int = 12, title: str = "Why Small Teams Ship Faster") -> str:
    paragraph = (
        "<p>Small teams ship faster because every decision, every review, and every deploy "
        "involves fewer people, fewer meetings, and fewer handoffs. When a team of four owns "
        "a service end to end, they can change the schema, update the client, and roll out "
        "the release in a single afternoon, without waiting on another group, another queue, "
        "or another approval step that adds days of latency to a simple change.</p>"
    )
    body = "\n".join(paragraph for _ in range(paragraphs))
    return f"""<!DOCTYPE html>
<html>
<head>
  <title>{title} | Example Engineering</title>
  <meta name="description" content="How team size shapes delivery speed.">
  <meta name="author" content="Dana Writer">
  <meta name="keywords" content="teams, delivery, engineering">
  <meta property="og:site_name" content="Example Engineering">
  <meta property="article:published_time" content="2024-03-01T09:00:00Z">
</head>
<body>
  <nav><a href="/">Home</a> <a href="/blog">Blog</a></nav>
  <article>
    <h1>{title}</h1>
    {body}
  </article>
  <footer>Copyright Example Engineering</footer>
</body>
</html>
"""


@pytest.fixture
def article_html() -> Callable[..., str]:
    return _article_html
