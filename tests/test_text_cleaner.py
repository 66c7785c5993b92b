from gigradar.text_cleaner import MAX_CLEAN_LENGTH, clean_description, extract_skills


def test_strips_tags_entities_and_whitespace() -> None:
    raw = "<p>Build a&nbsp;<b>React</b>   app</p>\n\n<ul><li>Fast &amp; clean</li></ul>"
    assert clean_description(raw) == "Build a React app Fast & clean"


def test_empty_description() -> None:
    assert clean_description(None) == ""
    assert clean_description("") == ""


def test_plain_text_that_looks_like_a_url() -> None:
    assert clean_description("https://example.com/brief") == "https://example.com/brief"


def test_long_description_is_truncated() -> None:
    text = clean_description("word " * 2000)
    assert len(text) == MAX_CLEAN_LENGTH + 3
    assert text.endswith("...")


def test_extract_skills_whole_words_only() -> None:
    skills = extract_skills("We use react, Next.js and PostgreSQL. Reactive streams are a bonus.")
    assert "React" in skills
    assert "Next.js" in skills
    assert "PostgreSQL" in skills
    assert "SQL" not in skills


def test_extract_skills_no_duplicates() -> None:
    assert extract_skills("Python python PYTHON") == ["Python"]


def test_extract_skills_empty() -> None:
    assert extract_skills("") == []
