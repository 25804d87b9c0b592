from app.quietmap.modules.geo.postcodes import (
    compact_postcode,
    format_postcode,
    is_uk_postcode,
    normalize_postcode,
    postcode_variants,
)


def test_normalize_uppercases_and_collapses_whitespace():
    assert normalize_postcode("  ls1   2ab ") == "LS1 2AB"
    assert normalize_postcode(None) == ""


def test_compact_and_format():
    assert compact_postcode("ls1 2ab") == "LS12AB"
    assert format_postcode("ls12ab") == "LS1 2AB"
    assert format_postcode("ls211aa") == "LS21 1AA"
    assert format_postcode("  ec1a  1bb ") == "EC1A 1BB"
    assert format_postcode("") == ""


def test_variants_cover_spaced_and_compact_forms():
    assert postcode_variants("ls1 2ab") == ["LS1 2AB", "LS12AB"]
    assert postcode_variants("") == []


def test_uk_pattern():
    for pc in ("LS1 2AB", "ls12ab", "EC1A 1BB", "W1A 0AX", "M1 1AE", "GIR 0AA"):
        assert is_uk_postcode(pc), pc
    for pc in ("", "12345", "LS1 2A", "NOT A POSTCODE"):
        assert not is_uk_postcode(pc), pc
