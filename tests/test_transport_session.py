from mobiquo.transport.session import Cookie, Session, parse_set_cookie


def test_parse_set_cookie_reads_name_value_and_domain() -> None:
    cookie = parse_set_cookie("sid=abc123; Path=/; Domain=.example.com; HttpOnly")
    assert cookie == Cookie(name="sid", value="abc123", domain=".example.com")


def test_parse_set_cookie_without_domain_and_with_equals_in_value() -> None:
    assert parse_set_cookie("token=a=b=c; Secure") == Cookie(name="token", value="a=b=c")


def test_parse_set_cookie_ignores_headers_without_pair() -> None:
    assert parse_set_cookie("") is None
    assert parse_set_cookie("HttpOnly; Path=/") is None
    assert parse_set_cookie("=orphan") is None


def test_domain_scoping() -> None:
    session = Session("forum.example.com")
    assert session.accepts_domain(None)
    assert session.accepts_domain("forum.example.com")
    assert session.accepts_domain(".example.com")
    assert session.accepts_domain("EXAMPLE.com")
    assert not session.accepts_domain("evil.com")
    assert not session.accepts_domain("ample.com")
    assert not session.accepts_domain("sub.forum.example.com")


def test_foreign_cookie_is_dropped_and_jar_untouched() -> None:
    session = Session("forum.example.com")
    assert session.store_set_cookie("sid=1; Domain=forum.example.com")
    assert not session.store_set_cookie("tracker=x; Domain=ads.net")
    assert session.names() == ["sid"]
    assert "tracker" not in session


def test_last_write_wins_per_name() -> None:
    session = Session("forum.example.com")
    session.set_cookie("sid", "old")
    session.set_cookie("sid", "new")
    assert len(session) == 1
    assert session.get("sid") == "new"


def test_cookie_header_joins_pairs_and_clear_empties_jar() -> None:
    session = Session("forum.example.com")
    assert session.cookie_header() is None
    session.set_cookie("a", "1")
    session.set_cookie("b", "2")
    assert session.cookie_header() == "a=1; b=2"
    session.clear()
    assert len(session) == 0
    assert session.cookie_header() is None
