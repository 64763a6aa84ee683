import pytest

from shopify_commerce_feed.storage import SQLiteFeedStore

SHOP = "mugco.myshopify.com"


@pytest.fixture()
def store():
    store = SQLiteFeedStore(":memory:")
    yield store
    store.close()


def count_rows(store, table, shop=SHOP):
    return store._conn.execute(f"SELECT COUNT(*) FROM {table} WHERE shop = ?", (shop,)).fetchone()[0]


def test_get_settings_creates_defaults_once(store):
    assert not store.has_settings(SHOP)

    first = store.get_settings(SHOP)
    second = store.get_settings(SHOP)

    assert first == second
    assert count_rows(store, "feed_settings") == 1
    assert first.enable_search is True
    assert first.enable_checkout is False
    assert first.accepts_returns is True
    assert first.return_deadline_days == 30
    assert first.accepts_exchanges is True
    assert first.store_country == "US"
    assert first.target_countries == "US"
    assert first.seller_name is None
    assert first.feed_generated_at is None
    assert first.product_count == 0
    assert store.has_settings(SHOP)


def test_partial_update_changes_only_given_fields(store):
    store.update_settings(SHOP, {"seller_name": "Mug Co", "return_deadline_days": 14, "accepts_exchanges": False})
    before = store.get_settings(SHOP)

    store.update_settings(SHOP, {"enable_search": False})
    after = store.get_settings(SHOP)

    assert after.enable_search is False
    assert after.model_dump(exclude={"enable_search"}) == before.model_dump(exclude={"enable_search"})
    assert after.seller_name == "Mug Co"
    assert after.return_deadline_days == 14
    assert after.accepts_exchanges is False


def test_update_creates_row_and_stores_booleans_as_integers(store):
    store.update_settings(SHOP, {"enable_checkout": True, "accepts_returns": False})

    row = store._conn.execute(
        "SELECT enable_checkout, accepts_returns FROM feed_settings WHERE shop = ?", (SHOP,)
    ).fetchone()
    assert tuple(row) == (1, 0)


def test_update_can_clear_optional_fields(store):
    store.update_settings(SHOP, {"privacy_policy_url": "https://mugco.example/privacy"})
    store.update_settings(SHOP, {"privacy_policy_url": None})
    assert store.get_settings(SHOP).privacy_policy_url is None


def test_empty_update_writes_nothing(store):
    store.update_settings(SHOP, {})
    store.update_settings(SHOP, {"not_a_setting": "x"})
    assert not store.has_settings(SHOP)


def test_update_bumps_updated_at(store):
    store.get_settings(SHOP)
    with store._conn:
        store._conn.execute("UPDATE feed_settings SET updated_at = 0 WHERE shop = ?", (SHOP,))

    store.update_settings(SHOP, {"store_country": "CA"})

    updated_at = store._conn.execute(
        "SELECT updated_at FROM feed_settings WHERE shop = ?", (SHOP,)
    ).fetchone()[0]
    assert updated_at > 0


def test_zero_day_return_deadline_is_kept(store):
    store.update_settings(SHOP, {"return_deadline_days": 0})
    assert store.get_settings(SHOP).return_deadline_days == 0


def test_replace_feed_replaces_cache_and_stamps_settings(store):
    assert store.get_cached_feed(SHOP) is None
    store.get_settings(SHOP)

    store.replace_feed(SHOP, '{"item_id":"a"}\n{"item_id":"b"}', 2, 1_700_000_000_000)
    store.replace_feed(SHOP, '{"item_id":"c"}', 1, 1_700_000_500_000)

    cached = store.get_cached_feed(SHOP)
    assert cached.feed_data == '{"item_id":"c"}'
    assert cached.product_count == 1
    assert cached.generated_at == 1_700_000_500_000
    assert count_rows(store, "feed_cache") == 1

    settings = store.get_settings(SHOP)
    assert settings.feed_generated_at == 1_700_000_500_000
    assert settings.product_count == 1


def test_empty_feed_is_present_not_absent(store):
    store.replace_feed(SHOP, "", 0, 1_700_000_000_000)
    cached = store.get_cached_feed(SHOP)
    assert cached is not None
    assert cached.feed_data == ""
    assert cached.product_count == 0


def test_deletes_are_idempotent(store):
    store.get_settings(SHOP)
    store.replace_feed(SHOP, "{}", 1, 1_700_000_000_000)

    store.delete_settings(SHOP)
    store.delete_cache(SHOP)
    store.delete_settings(SHOP)
    store.delete_cache(SHOP)

    assert not store.has_settings(SHOP)
    assert store.get_cached_feed(SHOP) is None


def test_shops_are_isolated(store):
    store.update_settings(SHOP, {"seller_name": "Mug Co"})
    other = store.get_settings("other.myshopify.com")
    assert other.seller_name is None


def test_data_persists_across_connections(tmp_path):
    db_path = str(tmp_path / "feeds.db")
    first = SQLiteFeedStore(db_path)
    first.update_settings(SHOP, {"seller_name": "Mug Co"})
    first.replace_feed(SHOP, "{}", 1, 1_700_000_000_000)
    first.close()

    second = SQLiteFeedStore(db_path)
    assert second.get_settings(SHOP).seller_name == "Mug Co"
    assert second.get_cached_feed(SHOP).product_count == 1
    second.close()
