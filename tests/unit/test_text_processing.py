from resumefit.core.text_processing import (
    contains_digit,
    normalize_text,
    shares_token,
    tokenize,
    tokenize_stream,
    tokens_from_list,
)


def test_normalize_text_handles_unicode_quirks():
    assert normalize_text("full\u2013stack\u00a0 engineer ") == "full-stack engineer"
    assert normalize_text("") == ""


def test_tokenize_stream_keeps_order_and_drops_stopwords():
    assert tokenize_stream("The role requires Python and Node.js for APIs") == ["requires", "python", "node.js", "apis"]


def test_tokenize_keeps_internal_separators():
    toks = tokenize("Node.js and full-stack work")
    assert {"node.js", "full-stack", "work"} <= toks


def test_tokens_from_list_unions_items():
    assert tokens_from_list(["Cloud Infrastructure", "AWS"]) == {"cloud", "infrastructure", "aws"}
    assert tokens_from_list([]) == set()


def test_contains_digit():
    assert contains_digit("Cut costs by 30%")
    assert not contains_digit("Led the migration")
    assert not contains_digit("")


def test_shares_token():
    themes = {"kubernetes", "aws"}
    assert shares_token("Ran Kubernetes clusters", themes)
    assert not shares_token("Watercolor painting", themes)
    assert not shares_token("Kubernetes", set())


def test_tokenize_keeps_language_names_with_symbols_and_single_letters():
    assert tokenize_stream("C++, C# and R for analysis") == ["c++", "c#", "r", "analysis"]
    assert shares_token("Ported the C# services", {"c#"})
    assert not shares_token("Ported the C# services", {"c++"})
