import pytest

from estates.models.property import PropertyFilters
from estates.services.query_engine import QueryEngine, parse_room_filter
from estates.utils.errors import NotFound, ValidationError


def ids(rows):
    return [row.id for row in rows]


def search(engine, **filters):
    return engine.search(PropertyFilters(**filters))


def test_default_search_is_newest_first(engine):
    page = search(engine)
    assert page.total == 6
    assert ids(page.properties) == ["prop-6", "prop-5", "prop-4", "prop-3", "prop-2", "prop-1"]
    assert page.page == 1
    assert page.limit == 9


def test_location_and_price_high(engine):
    page = search(engine, location="new york", sort="price-high")
    assert page.total == 6
    assert ids(page.properties) == ["prop-1", "prop-2", "prop-3", "prop-4", "prop-5", "prop-6"]


def test_location_matches_neighbourhood_substring(engine):
    assert ids(search(engine, location="soho").properties) == ["prop-4"]
    assert ids(search(engine, location="  Brooklyn ").properties) == ["prop-2"]
    assert search(engine, location="boston").total == 0


def test_property_type_filter(engine):
    assert ids(search(engine, property_type="apartment", sort="price-low").properties) == ["prop-6", "prop-5", "prop-4"]
    assert search(engine, property_type="any").total == 6


def test_price_bounds_are_inclusive(engine):
    page = search(engine, min_price=1950000, max_price=2800000, sort="price-low")
    assert ids(page.properties) == ["prop-4", "prop-3"]


def test_area_bounds(engine):
    page = search(engine, min_area=2200, max_area=4500, sort="price-high")
    assert ids(page.properties) == ["prop-1", "prop-3", "prop-4"]


def test_bedrooms_plus_means_at_least(engine):
    assert ids(search(engine, bedrooms="4+", sort="price-high").properties) == ["prop-1", "prop-2", "prop-3"]
    assert ids(search(engine, bedrooms="4", sort="price-high").properties) == ["prop-1", "prop-3"]
    assert ids(search(engine, bathrooms="2", sort="price-high").properties) == ["prop-4", "prop-5"]
    assert search(engine, bedrooms="any").total == 6


def test_malformed_room_filter_is_rejected(engine):
    with pytest.raises(ValidationError):
        search(engine, bedrooms="three")
    with pytest.raises(ValidationError):
        search(engine, bathrooms="2++")


def test_parse_room_filter():
    assert parse_room_filter(None, "bedrooms") is None
    assert parse_room_filter("", "bedrooms") is None
    parsed = parse_room_filter("3+", "bedrooms")
    assert parsed.count == 3 and parsed.at_least
    assert parsed.matches(5) and not parsed.matches(2)
    exact = parse_room_filter("3", "bedrooms")
    assert exact.matches(3) and not exact.matches(4)


def test_amenities_must_all_be_present(engine):
    page = search(engine, amenities=["gym", "CONCIERGE"], sort="price-high")
    assert ids(page.properties) == ["prop-1", "prop-4", "prop-5"]
    assert ids(search(engine, amenities=["Garden", "Pet Friendly"], sort="price-high").properties) == ["prop-2", "prop-6"]


def test_filters_combine_with_and(engine):
    page = search(engine, property_type="apartment", amenities=["Gym"], max_price=1500000)
    assert ids(page.properties) == ["prop-5"]


def test_popular_and_price_low_orders(engine):
    assert ids(search(engine, sort="popular").properties) == ["prop-4", "prop-1", "prop-2", "prop-3", "prop-5", "prop-6"]
    assert ids(search(engine, sort="price-low").properties) == ["prop-6", "prop-5", "prop-4", "prop-3", "prop-2", "prop-1"]


def test_unknown_sort_is_rejected(engine):
    with pytest.raises(ValidationError):
        search(engine, sort="cheapest")


def test_sort_is_stable_for_ties(store, listing):
    first = store.create_property(listing(title="Tie A", price=500))
    second = store.create_property(listing(title="Tie B", price=500))
    engine = QueryEngine(store)
    for sort in ("price-low", "price-high"):
        assert ids(search(engine, max_price=500, sort=sort).properties) == [first.id, second.id]


def test_pagination_windows_after_counting(store):
    engine = QueryEngine(store, page_size=4)
    first = search(engine, sort="price-high")
    second = search(engine, sort="price-high", page=2)
    beyond = search(engine, sort="price-high", page=3)
    assert (first.total, second.total, beyond.total) == (6, 6, 6)
    assert ids(first.properties) == ["prop-1", "prop-2", "prop-3", "prop-4"]
    assert ids(second.properties) == ["prop-5", "prop-6"]
    assert beyond.properties == []


def test_default_page_size_walks_every_listing_once(store, engine, listing):
    for n in range(14):
        store.create_property(listing(title=f"Queens Condo {n}", price=500000 + n * 1000))
    everything = {prop.id for prop in store.list_properties()}
    assert len(everything) == 20

    for sort in ("newest", "price-low"):
        pages = [search(engine, sort=sort, page=number) for number in (1, 2, 3, 4)]
        assert [len(page.properties) for page in pages] == [9, 9, 2, 0]
        assert {page.total for page in pages} == {20}
        assert {page.limit for page in pages} == {9}
        walked = [prop.id for page in pages for prop in page.properties]
        assert len(walked) == len(set(walked)) == 20
        assert set(walked) == everything


def test_explicit_limit_overrides_page_size(engine):
    page = search(engine, limit=2, page=2, sort="price-low")
    assert ids(page.properties) == ["prop-4", "prop-3"]
    assert page.limit == 2


def test_featured(engine):
    assert ids(engine.featured()) == ["prop-1", "prop-2", "prop-3", "prop-4"]


def test_property_detail_counts_one_view_and_joins_agent(engine, store):
    detail = engine.property_detail("prop-1")
    assert detail.view_count == 343
    assert store.get_property("prop-1").view_count == 343
    assert detail.agent.id == "agent-1"
    assert detail.agent.user.full_name == "John Anderson"


def test_property_detail_missing_touches_nothing(engine, store):
    before = {prop.id: prop.view_count for prop in store.list_properties()}
    with pytest.raises(NotFound):
        engine.property_detail("prop-404")
    assert {prop.id: prop.view_count for prop in store.list_properties()} == before


def test_property_detail_records_viewer(engine, store):
    engine.property_detail("prop-2", viewer_id="member-1")
    engine.property_detail("prop-3", viewer_id="member-1")
    assert ids(engine.recently_viewed("member-1")) == ["prop-3", "prop-2"]


def test_property_with_agent_has_no_side_effects(engine, store):
    joined = engine.property_with_agent("prop-4")
    assert joined.agent.user.full_name == "Michael Chen"
    assert store.get_property("prop-4").view_count == 410


def test_dangling_agent_reference_resolves_to_none(store, listing):
    prop = store.create_property(listing(agent_id="agent-gone"))
    assert QueryEngine(store).property_with_agent(prop.id).agent is None


def test_similar_excludes_source_and_orders_newest_first(engine):
    assert ids(engine.similar("prop-4")) == ["prop-6", "prop-5", "prop-3"]
    assert engine.similar("prop-404") == []


def test_similar_matches_type_or_city(store, listing):
    condo = store.create_property(listing(city="Queens", property_type="condo"))
    twin = store.create_property(listing(city="Hoboken", property_type="condo", title="Twin"))
    store.create_property(listing(city="Hoboken", property_type="house", title="Unrelated"))
    assert ids(QueryEngine(store).similar(condo.id)) == [twin.id]


def test_agents_join_users(engine):
    agents = engine.agents()
    assert [agent.id for agent in agents] == ["agent-1", "agent-2", "agent-3", "agent-4"]
    assert agents[1].user.full_name == "Sarah Mitchell"
    assert engine.agent("agent-3").user.email == "michael@luxeestates.com"
    with pytest.raises(NotFound):
        engine.agent("agent-99")


def test_agent_properties(engine):
    assert ids(engine.agent_properties("agent-1")) == ["prop-1", "prop-5"]
    with pytest.raises(NotFound):
        engine.agent_properties("agent-99")


def test_favorite_properties_follow_favorite_order(engine, store):
    store.add_favorite("member-1", "prop-3")
    store.add_favorite("member-1", "prop-1")
    store.add_favorite("member-2", "prop-2")
    assert ids(engine.favorite_properties("member-1")) == ["prop-3", "prop-1"]
    store.delete_property("prop-3")
    assert ids(engine.favorite_properties("member-1")) == ["prop-1"]


def test_blog_posts_newest_published_first(engine):
    posts = engine.blog_posts()
    assert [post.id for post in posts] == ["blog-3", "blog-2", "blog-1"]
    assert posts[2].author.full_name == "John Anderson"


def test_blog_category_matches_slugified_name(engine):
    assert [post.id for post in engine.blog_posts("market-trends")] == ["blog-1"]
    assert [post.id for post in engine.blog_posts("Market Trends")] == ["blog-1"]
    assert len(engine.blog_posts("all")) == 3
    assert engine.blog_posts("gardening") == []


def test_unpublished_posts_are_hidden(engine, store):
    store.create_blog_post(
        {"title": "Draft", "slug": "draft-post", "excerpt": "e", "content": "c", "category": "Investment"}
    )
    assert "draft-post" not in [post.slug for post in engine.blog_posts()]
    with pytest.raises(NotFound):
        engine.blog_post("draft-post")
    assert engine.blog_post("first-time-buyer-guide-nyc").author.full_name == "Emily Rodriguez"


def test_blog_preview_is_first_three(engine, store):
    store.create_blog_post(
        {
            "title": "Fresh",
            "slug": "fresh-post",
            "excerpt": "e",
            "content": "c",
            "category": "News",
            "is_published": True,
            "published_at": "2024-04-01T00:00:00",
        }
    )
    assert [post.slug for post in engine.blog_preview()] == [
        "fresh-post",
        "investment-properties-maximizing-returns",
        "first-time-buyer-guide-nyc",
    ]


def test_admin_properties_are_newest_first(engine):
    assert ids(engine.admin_properties())[:2] == ["prop-6", "prop-5"]
    assert len(engine.admin_properties(limit=3)) == 3
