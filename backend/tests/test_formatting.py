from decimal import Decimal

from parcelgis.properties.formatting import (
    choose_situs_address,
    format_property_address,
    has_house_number,
    normalize_acreage,
    to_number,
)


def test_format_property_address_expands_abbreviations():
    assert format_property_address("123 n lamar blvd") == "123 North Lamar Boulevard"
    assert format_property_address("  4500   BEE CAVE RD  AUSTIN TX 78746 ") == "4500 Bee Cave Road Austin Texas 78746"
    assert format_property_address("12b o'neil ct") == "12B O'Neil Court"


def test_format_property_address_handles_empty_values():
    assert format_property_address(None) is None
    assert format_property_address("   ") is None


def test_choose_situs_address_prefers_numbered_parcel_address():
    assert choose_situs_address("100 Main St", "102 Main St") == "100 Main St"
    assert choose_situs_address("MAIN ST", "102 Main St") == "102 Main St"
    assert choose_situs_address("MAIN ST", None) == "MAIN ST"
    assert choose_situs_address("  ", " ") is None
    assert has_house_number(" 9 Elm")
    assert not has_house_number("Elm 9")


def test_numeric_normalization():
    assert normalize_acreage(Decimal("1.234567")) == 1.2346
    assert normalize_acreage(float("nan")) is None
    assert normalize_acreage(None) is None
    assert to_number("12.5") == 12.5
    assert to_number("n/a") is None
