import json
import os

import pytest

from locale_sync.app_config import AppConfig


@pytest.fixture
def make_config(tmp_path):
    """Factory building an AppConfig rooted in a temporary directory."""
    def _make_config(**overrides) -> AppConfig:
        values = dict(
            project_root=str(tmp_path),
            base_dir=str(tmp_path / "locales"),
            source_language="en",
            target_languages=["fr"],
            language_codes={"en": "English", "fr": "French", "de": "German"},
            enable_translation=False,
            model_name="gpt-4o-mini",
            max_model_tokens=4000,
            batch_size=30,
            max_concurrent_api_calls=1,
            requests_per_minute=60,
            dry_run=False,
            fill_empty_strings=True,
            openai_client=None
        )
        values.update(overrides)
        return AppConfig(**values)

    return _make_config


@pytest.fixture
def locale_files(tmp_path):
    """Writes ``{language: {filename: tree}}`` below ``tmp_path/locales``."""
    base_dir = tmp_path / "locales"

    def _write(layout):
        for language, files in layout.items():
            language_dir = base_dir / language
            os.makedirs(language_dir, exist_ok=True)
            for filename, content in files.items():
                path = language_dir / filename
                if isinstance(content, str):
                    path.write_text(content, encoding="utf-8")
                else:
                    path.write_text(json.dumps(content, ensure_ascii=False, indent=2), encoding="utf-8")
        return base_dir

    return _write


def read_tree(path):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def read_locale(tmp_path):
    """Reads back ``tmp_path/locales/<language>/<filename>``."""
    def _read(language, filename):
        return read_tree(tmp_path / "locales" / language / filename)

    return _read
