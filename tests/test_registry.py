from fetchrest import ClientRegistry, FetchRest, default_registry, get_client


def test_first_construction_wins():
    reg = ClientRegistry()
    one = reg.get("http://one")
    two = reg.get("http://two")
    assert one is two
    assert one.base_url == "http://one"


def test_keys_are_independent_and_reset():
    reg = ClientRegistry()
    a = reg.get("http://a", key="a")
    b = reg.get("http://b", key="b")
    assert a is not b
    assert "a" in reg

    reg.reset("a")
    assert "a" not in reg
    assert reg.get("http://a2", key="a").base_url == "http://a2"
    assert reg.get(key="b") is b

    reg.reset()
    assert "b" not in reg


def test_default_registry():
    default_registry.reset()
    try:
        client = get_client("http://localhost:3000")
        assert isinstance(client, FetchRest)
        assert get_client("http://localhost:4000") is client
    finally:
        default_registry.reset()
