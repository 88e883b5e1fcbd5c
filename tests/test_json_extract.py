"""
Tests for best-effort extraction of model output.
"""

import json

from weblitho.json_extract import (
    DOCTYPE,
    complete_html,
    extract_json_object,
    extract_output,
    icon_for_path,
    merge_files,
    strip_code_fences,
    wrap_in_html,
)

PAGE = "<!DOCTYPE html><html><body><h1>Hi</h1></body></html>"


class TestExtractJsonObject:

    def test_direct(self):
        assert extract_json_object('{"valid": true}') == {"valid": True}

    def test_fenced(self):
        assert extract_json_object('```json\n{"score": 90}\n```') == {"score": 90}

    def test_embedded_in_prose(self):
        assert extract_json_object('Here you go: {"score": 70} hope it helps') == {"score": 70}

    def test_garbage_returns_none(self):
        assert extract_json_object("not json at all") is None
        assert extract_json_object("") is None
        assert extract_json_object(None) is None

    def test_non_object_returns_none(self):
        assert extract_json_object("[1, 2, 3]") is None


class TestStripCodeFences:

    def test_html_fence(self):
        assert strip_code_fences("```html\n<p>x</p>\n```") == "<p>x</p>"

    def test_plain_text_untouched(self):
        assert strip_code_fences("  <p>x</p> ") == "<p>x</p>"


class TestExtractOutput:

    def test_raw_html_document(self):
        out = extract_output("Sure!\n" + PAGE + "\nEnjoy")
        assert out.preview == PAGE
        assert out.files == []

    def test_fenced_html(self):
        assert extract_output("```html\n" + PAGE + "\n```").preview == PAGE

    def test_think_tags_removed(self):
        out = extract_output("<think>planning {the page}</think>" + PAGE)
        assert out.preview == PAGE

    def test_json_payload_with_files_and_pages(self):
        payload = {
            "preview": PAGE,
            "files": [{"path": "index.html", "content": PAGE}, {"path": 3}],
            "pages": [{"id": "about", "name": "About", "path": "/about", "preview": PAGE}],
        }
        out = extract_output(json.dumps(payload))
        assert out.preview == PAGE
        assert out.files == [{"path": "index.html", "content": PAGE}]
        assert out.pages[0]["icon"] == "info"

    def test_bare_html_tag_gets_doctype(self):
        out = extract_output("<html><body>x</body></html>")
        assert out.preview.startswith(DOCTYPE)

    def test_bare_fence_removed_with_following_whitespace(self):
        out = extract_output("<!DOCTYPE html><p>x ```\n\n  tail")
        assert out.preview == "<!DOCTYPE html><p>x tail"

    def test_nothing_usable(self):
        out = extract_output("I cannot help with that.")
        assert out.preview == ""
        assert out.to_dict() == {"preview": "", "files": [], "pages": []}


class TestHelpers:

    def test_icon_for_path(self):
        assert icon_for_path("/") == "home"
        assert icon_for_path(None) == "home"
        assert icon_for_path("/pricing") == "dollar-sign"
        assert icon_for_path("/random") == "file-text"

    def test_merge_files_overlays_by_path(self):
        existing = [{"path": "a", "content": "1"}, {"path": "b", "content": "2"}]
        new = [{"path": "b", "content": "3"}, {"path": "c", "content": "4"}]
        merged = merge_files(existing, new)
        assert [f["path"] for f in merged] == ["a", "b", "c"]
        assert merged[1]["content"] == "3"

    def test_merge_files_empty_sides(self):
        assert merge_files([], [{"path": "a", "content": ""}]) == [{"path": "a", "content": ""}]
        assert merge_files([{"path": "a", "content": ""}], []) == [{"path": "a", "content": ""}]

    def test_complete_html_closes_partial_document(self):
        completed = complete_html("<!DOCTYPE html><html><body><p>partial")
        assert completed.endswith("</body>\n</html>")
        assert complete_html(PAGE) == PAGE

    def test_wrap_in_html_inserts_content_raw(self):
        wrapped = wrap_in_html("<h1>Menu</h1>")
        assert wrapped.startswith(DOCTYPE)
        assert '<body class="antialiased bg-gray-950 text-white min-h-screen font-sans">\n  <h1>Menu</h1>\n</body>' in wrapped
