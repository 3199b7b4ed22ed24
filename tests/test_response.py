"""Tests for the response post-processor."""

import pytest

from llm_system.core.response import ResponseMode, clean_html_response, clean_response


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("```html<p>A</p>```", "<p>A</p>"),
        ("```html\n<p>A</p>\n```", "<p>A</p>"),
        ("```htm\n<p>A</p>```", "<p>A</p>"),
        ("```\n<ul>\n<li>A</li>\n</ul>\n```", "<ul><li>A</li></ul>"),
        ("<p>No fences</p>\n", "<p>No fences</p>"),
        ("  <p>A</p>  ", "<p>A</p>"),
    ],
)
def test_clean_html_response(raw, expected):
    assert clean_html_response(raw) == expected


def test_inner_fences_are_kept():
    raw = "```html<p>Use ```code``` here</p>```"
    assert clean_html_response(raw) == "<p>Use ```code``` here</p>"


def test_html_mode_dispatches_to_html_cleanup():
    assert clean_response("```html\n<p>A</p>```", ResponseMode.HTML) == "<p>A</p>"


@pytest.mark.parametrize("raw", ["```js\nconsole.log(1)\n```", "# Title\n\n- item\n", ""])
def test_markdown_mode_is_untouched(raw):
    assert clean_response(raw, ResponseMode.MARKDOWN) == raw


def test_response_mode_from_config_value():
    assert ResponseMode("html") is ResponseMode.HTML
    assert ResponseMode("markdown") is ResponseMode.MARKDOWN
    with pytest.raises(ValueError):
        ResponseMode("xml")
