from pathlib import Path

import pytest

BASE_TEMPLATE = (
    "<html><head><title>{{ page.title }} | {{ site.name }}</title></head>"
    "<body>{{ content }}</body></html>"
)


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def create_project(root: Path) -> Path:
    write(root / "forge.yaml", "site_name: Test Site\nauthor: Ada\n")
    write(root / "templates" / "base.html", BASE_TEMPLATE)
    write(root / "content" / "pages" / "index.md", "---\ntitle: Home\n---\n# Welcome\n")
    write(
        root / "content" / "blog" / "hello.md",
        "---\ntitle: Hello\ndate: 2024-01-15\n---\nHello *world*\n",
    )
    return root


@pytest.fixture
def project(tmp_path: Path) -> Path:
    return create_project(tmp_path)
