"""Unit tests for the json_files module."""
import json
import os

import pytest

from locale_sync.json_files import (
    compare_directories,
    delete_json_file,
    list_json_files,
    read_json_file,
    serialize_json,
    write_json_file
)


class TestJsonFiles:

    def test_serialize_json_format(self):
        assert serialize_json({"b": "Grüße", "a": [1]}) == '{\n  "b": "Grüße",\n  "a": [\n    1\n  ]\n}\n'

    def test_write_creates_parent_directory(self, tmp_path):
        path = tmp_path / "fr" / "nested" / "common.json"

        write_json_file(str(path), {"title": "Bonjour"})

        assert read_json_file(str(path)) == {"title": "Bonjour"}

    def test_write_dry_run_does_not_touch_disk(self, tmp_path):
        path = tmp_path / "fr" / "common.json"

        write_json_file(str(path), {"title": "Bonjour"}, dry_run=True)

        assert not path.exists()
        assert not (tmp_path / "fr").exists()

    def test_read_invalid_json_raises(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(json.JSONDecodeError):
            read_json_file(str(path))

    def test_delete(self, tmp_path):
        path = tmp_path / "old.json"
        path.write_text("{}", encoding="utf-8")

        delete_json_file(str(path), dry_run=True)
        assert path.exists()

        delete_json_file(str(path))
        assert not path.exists()

    def test_list_json_files_is_sorted_and_filtered(self, tmp_path):
        for name in ["b.json", "a.json", "notes.txt"]:
            (tmp_path / name).write_text("{}", encoding="utf-8")
        os.makedirs(tmp_path / "folder.json")

        assert list_json_files(str(tmp_path)) == ["a.json", "b.json"]

    def test_list_json_files_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            list_json_files(str(tmp_path / "missing"))


class TestCompareDirectories:

    def _populate(self, directory, names):
        os.makedirs(directory, exist_ok=True)
        for name in names:
            (directory / name).write_text("{}", encoding="utf-8")

    def test_classifies_files(self, tmp_path):
        self._populate(tmp_path / "en", ["common.json", "home.json", "about.json"])
        self._populate(tmp_path / "fr", ["home.json", "legacy.json"])

        diff = compare_directories(str(tmp_path / "en"), str(tmp_path / "fr"))

        assert diff.files_to_add == ["about.json", "common.json"]
        assert diff.files_to_delete == ["legacy.json"]
        assert diff.files_to_sync == ["home.json"]

    def test_matching_directories_only_sync(self, tmp_path):
        self._populate(tmp_path / "en", ["a.json", "b.json"])
        self._populate(tmp_path / "fr", ["b.json", "a.json"])

        diff = compare_directories(str(tmp_path / "en"), str(tmp_path / "fr"))

        assert diff.files_to_add == []
        assert diff.files_to_delete == []
        assert diff.files_to_sync == ["a.json", "b.json"]

    def test_missing_target_directory_is_created(self, tmp_path):
        self._populate(tmp_path / "en", ["common.json"])

        diff = compare_directories(str(tmp_path / "en"), str(tmp_path / "de"))

        assert (tmp_path / "de").is_dir()
        assert diff.files_to_add == ["common.json"]
        assert diff.files_to_delete == []
        assert diff.files_to_sync == []

    def test_missing_target_directory_in_dry_run(self, tmp_path):
        self._populate(tmp_path / "en", ["common.json"])

        diff = compare_directories(str(tmp_path / "en"), str(tmp_path / "de"), dry_run=True)

        assert not (tmp_path / "de").exists()
        assert diff.files_to_add == ["common.json"]

    def test_missing_source_directory_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            compare_directories(str(tmp_path / "en"), str(tmp_path / "fr"))
