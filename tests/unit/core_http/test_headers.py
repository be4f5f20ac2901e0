from core_http.headers import find_header, header_names, media_type, merge_headers


def test_merge_headers_is_case_insensitive_and_later_wins():
    merged = merge_headers(
        {"Content-Type": "application/json", "Accept": "*/*"},
        {"content-type": "text/plain"},
        {"AUTHORIZATION": "Bearer x"},
    )
    assert merged == {"Accept": "*/*", "content-type": "text/plain", "AUTHORIZATION": "Bearer x"}


def test_find_header():
    assert find_header({"X-Api-Key": "k"}, "x-api-key") == "k"
    assert find_header({}, "x-api-key") is None


def test_media_type_drops_parameters():
    assert media_type("Text/Turtle; charset=utf-8") == "text/turtle"
    assert media_type("  ") is None
    assert media_type(None) is None


def test_header_names_never_include_values():
    assert list(header_names({"b": "secret", "A": "token"})) == ["A", "b"]
