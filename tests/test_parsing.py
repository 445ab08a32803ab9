from decimal import Decimal

import pytest

from app.scrapers.parsing import (
    ParsedPrice,
    canonical_listing_url,
    classify_fragments,
    clean_text,
    extract_listing_id,
    looks_like_price,
    parse_mileage,
    parse_price,
    parse_year,
)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("₱1,250,000", ParsedPrice(Decimal("1250000"), "PHP")),
        ("USD 45,000", ParsedPrice(Decimal("45000"), "USD")),
        ("PHP350,000", ParsedPrice(Decimal("350000"), "PHP")),
        ("350,000 PHP", ParsedPrice(Decimal("350000"), "PHP")),
        ("$12,500", ParsedPrice(Decimal("12500"), "USD")),
        ("€9,999", ParsedPrice(Decimal("9999"), "EUR")),
        ("£7,000", ParsedPrice(Decimal("7000"), "GBP")),
        ("1,000,000", ParsedPrice(Decimal("1000000"), "PHP")),
        ("MSRP 45,000", ParsedPrice(Decimal("45000"), "PHP")),
        ("350,000 OBO", ParsedPrice(Decimal("350000"), "PHP")),
        ("CASH 1,250,000", ParsedPrice(Decimal("1250000"), "PHP")),
    ],
)
def test_parse_price(text, expected):
    assert parse_price(text) == expected


def test_parse_price_uses_configured_fallback_currency():
    assert parse_price("450,000", default_currency="USD") == ParsedPrice(Decimal("450000"), "USD")


@pytest.mark.parametrize("text", ["", None, "Free", "Contact seller"])
def test_parse_price_without_digits(text):
    assert parse_price(text) is None


def test_parse_year_takes_first_match():
    assert parse_year("2018 Toyota Fortuner 2.4 G, owned since 2019") == 2018
    assert parse_year("Toyota Vios 1.3 E") is None
    assert parse_year(None) is None


def test_parse_mileage_is_verbatim():
    assert parse_mileage("2015 Honda City 120,000 km") == "120,000 km"
    assert parse_mileage("Mitsubishi Mirage 80K only") == "80K"
    assert parse_mileage("Ford Ranger 30,000 miles") == "30,000 miles"
    assert parse_mileage("Toyota Innova 50kms") == "50km"
    assert parse_mileage("Suzuki Swift 80Kkm") == "80K"
    assert parse_mileage("2015 Kia Picanto") is None
    assert parse_mileage("Ford Ranger XLT") is None


def test_extract_listing_id():
    assert extract_listing_id("https://www.facebook.com/marketplace/item/123456789/?ref=x") == "123456789"
    assert extract_listing_id("/marketplace/item/42") == "42"
    assert extract_listing_id("https://www.facebook.com/marketplace/manila/cars") is None
    assert extract_listing_id(None) is None


def test_canonical_listing_url_drops_query_and_fragment():
    base = "https://www.facebook.com/marketplace/manila/cars?minPrice=350000"
    assert (
        canonical_listing_url("/marketplace/item/123/?ref=search&tracking=abc#top", base)
        == "https://www.facebook.com/marketplace/item/123/"
    )
    assert (
        canonical_listing_url("https://www.facebook.com/marketplace/item/123/", base)
        == "https://www.facebook.com/marketplace/item/123/"
    )


def test_clean_text_collapses_whitespace():
    assert clean_text("  2015   Toyota\n Vios ") == "2015 Toyota Vios"
    assert clean_text(None) == ""


def test_looks_like_price():
    assert looks_like_price("₱350,000")
    assert looks_like_price("PHP 1,200,000")
    assert looks_like_price("450,000 PHP")
    assert not looks_like_price("2015 Toyota Vios")
    assert not looks_like_price("Quezon City, PH")


def test_classify_fragments_picks_price_and_title():
    result = classify_fragments([
        "Marketplace › Vehicles › Cars",
        "₱350,000",
        "₱400,000 was the old price",
        "Short",
        "2015 Toyota Vios 1.3 E MT",
        "Quezon City, PH",
    ])

    assert result.price == "₱350,000"
    assert result.title == "2015 Toyota Vios 1.3 E MT"


def test_classify_fragments_title_must_exceed_minimum_length():
    result = classify_fragments(["₱350,000", "Honda City"], min_title_length=10)

    # exactly 10 characters is not enough
    assert result.price == "₱350,000"
    assert result.title is None


def test_classify_fragments_without_price():
    result = classify_fragments(["2015 Toyota Vios 1.3 E MT", "Quezon City, PH"])

    assert result.price is None
    assert result.title == "2015 Toyota Vios 1.3 E MT"
