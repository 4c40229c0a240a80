import pytest

from backend.app.services import field_map
from backend.app.services.field_map import SECTIONS, get_locator_table, load_locator_table
from backend.app.tools.check_locators import check_document, main as check_main


def test_table_covers_all_sections():
    table = get_locator_table()
    assert table.version >= 1
    assert set(table.sections) == set(SECTIONS)


def test_resolve_known_and_unknown_keys():
    loc = field_map.resolve("hero", "text")
    assert loc is not None
    assert loc.selector.endswith("p:nth-of-type(1)")
    assert loc.attr is None
    assert field_map.resolve("hero", "nope") is None
    assert field_map.resolve("nope", "title") is None


def test_link_keys_write_attributes():
    loc = field_map.resolve("contact", "emailLink")
    assert loc.is_link
    assert loc.attr == "href"
    assert loc.prefix == "mailto:"


def test_favicon_alias_maps_to_general():
    table = get_locator_table()
    assert table.canonical_section("favicon") == "general"
    assert table.image_locator("favicon").attr == "href"


def test_list_sections_have_list_blocks():
    table = get_locator_table()
    assert table.list_spec("services").kind == "services"
    assert table.list_spec("testimonials").kind == "testimonials"
    assert table.list_spec("hero") is None


def test_field_keys_is_read_only():
    keys = field_map.field_keys("general")
    assert "siteTitle" in keys
    with pytest.raises(TypeError):
        keys["siteTitle"] = None


def test_every_locator_resolves_against_canonical_document(fixture_html):
    checks = check_document(fixture_html, get_locator_table())
    missing = [(c.section, c.key, c.selector) for c in checks if not c.ok]
    assert missing == []
    # every field pair is covered by the check
    pairs = {(name, key) for name, key, _ in get_locator_table().pairs()}
    assert pairs <= {(c.section, c.key) for c in checks}


def test_unknown_section_in_table_is_rejected(tmp_path):
    path = tmp_path / "locators.yml"
    path.write_text(
        "version: 1\nsections:\n  blog:\n    container: '#blog'\n",
        encoding="utf-8",
    )
    with pytest.raises(ValueError):
        load_locator_table(path)


def test_check_locators_cli_reports_misses(tmp_path, capsys):
    doc = tmp_path / "index.html"
    doc.write_text("<html><head><title>x</title></head><body></body></html>", encoding="utf-8")
    assert check_main([str(doc), "--quiet"]) == 1
    out = capsys.readouterr().out
    assert "MISS hero" in out


def test_check_locators_cli_passes_on_fixture(capsys):
    from conftest import FIXTURES

    assert check_main([str(FIXTURES / "index.html")]) == 0
