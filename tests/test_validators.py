import pytest

from watchparty import (
    sanitize,
    validate_username,
    validate_message,
    validate_url,
    validate_room_code,
    validate_json_payload
)

@pytest.mark.parametrize("name", ["Bob", "a", "Mary Jane", "x_y-z", "A" * 20, "  Bob  ", "<b>Bob</b>"])
def test_valid_usernames(name):
    assert validate_username(name) is True

@pytest.mark.parametrize("name", [
    "",
    "   ",
    "A" * 21,
    "bob!",
    "o'brien",
    "a.b",
    "name@host",
    "<script>x</script>",
    "tab\tname",
    None,
])
def test_invalid_usernames(name):
    assert validate_username(name) is False

def test_username_length_is_measured_after_sanitizing():
    # 25 raw characters, 18 once the tag is gone
    assert validate_username("<i>" + "a" * 18 + "</i>") is True
    assert validate_username("<i></i>") is False

@pytest.mark.parametrize("text,expected", [
    ("hello", True),
    ("x", True),
    ("m" * 500, True),
    ("m" * 501, False),
    ("", False),
    ("    ", False),
    ("<script>alert(1)</script>", False),
    ("<b></b>", False),
    ("  " + "m" * 500 + "  ", True),
])
def test_validate_message(text, expected):
    assert validate_message(text) is expected

def test_message_rule_matches_sanitized_length():
    for text in ["<p>" + "z" * 499 + "</p>", "q" * 10, "<br>"]:
        assert validate_message(text) == (1 <= len(sanitize(text)) <= 500)

@pytest.mark.parametrize("url,expected", [
    ("https://x.com", True),
    ("http://example.com/movie.mp4?t=10", True),
    ("HTTPS://EXAMPLE.COM", True),
    ("ftp://x.com", False),
    ("file:///etc/passwd", False),
    ("javascript:alert(1)", False),
    ("not a url", False),
    ("https://", False),
    ("http://[::1", False),
    ("https://x.com:8080/a", True),
    ("  https://x.com/watch  ", True),
    ("http://exa mple.com", False),
    ("https://x.com/a\tb", False),
    ("https://x.com:99999", False),
    ("https://x.com:port", False),
    ('https://x.com/"><script>alert(1)</script>', False),
    ("https://x.com/<b>", False),
    ("", False),
    (None, False),
])
def test_validate_url(url, expected):
    assert validate_url(url) is expected

@pytest.mark.parametrize("code,expected", [
    ("ABCD1234", True),
    ("00000000", True),
    ("abcd1234", False),
    ("ABC123", False),
    ("ABCD12345", False),
    ("ABCD-123", False),
    ("ABCD1234\n", False),
    (12345678, False),
])
def test_validate_room_code(code, expected):
    assert validate_room_code(code) is expected

def test_json_payload_requires_type():
    is_valid, error = validate_json_payload({"username": "bob"})
    assert not is_valid
    assert error

def test_json_payload_rejects_non_dict():
    assert validate_json_payload(["join"])[0] is False

def test_json_payload_unknown_type():
    is_valid, error = validate_json_payload({"type": "teleport"})
    assert not is_valid
    assert "teleport" in error

def test_json_payload_missing_field():
    assert validate_json_payload({"type": "join", "username": "bob"})[0] is False
    assert validate_json_payload({"type": "join", "username": "bob", "room_code": "ABCD1234"}) == (True, "")

def test_json_payload_without_required_fields():
    assert validate_json_payload({"type": "roster"}) == (True, "")
