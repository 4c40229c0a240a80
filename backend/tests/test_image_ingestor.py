import pytest

from backend.app.errors import NotFoundError, ValidationError
from backend.app.services.content_locator import ContentLocator
from backend.app.services.document_patcher import DocumentPatcher
from backend.app.services.image_ingestor import ImageIngestor, safe_filename

from conftest import png_bytes


@pytest.fixture
def ingestor(settings):
    return ImageIngestor(ContentLocator.from_settings(settings), DocumentPatcher(), max_size_mb=1)


def test_logo_for_hero_updates_reference(ingestor, site_repo):
    result = ingestor.ingest(png_bytes(), "logo.png", "hero")
    assert result.image_path == "images/logo.png"
    assert (site_repo / "images" / "logo.png").read_bytes() == png_bytes()
    html = (site_repo / "index.html").read_text(encoding="utf-8")
    assert 'src="images/logo.png" alt="Fitness Trainer" id="trainer-image"' in html
    assert result.document_changed is True


def test_no_section_leaves_document(ingestor, site_repo, fixture_html):
    result = ingestor.ingest(png_bytes(), "logo.png")
    assert result.image_path == "images/logo.png"
    assert result.patch is None
    assert (site_repo / "index.html").read_text(encoding="utf-8") == fixture_html


def test_section_without_image_locator_leaves_document(ingestor, site_repo, fixture_html):
    result = ingestor.ingest(png_bytes(), "card.png", "services")
    assert result.document_changed is False
    assert (site_repo / "images" / "card.png").exists()
    assert (site_repo / "index.html").read_text(encoding="utf-8") == fixture_html


def test_same_name_overwrites(ingestor, site_repo):
    ingestor.ingest(png_bytes(color=(0, 0, 0)), "logo.png")
    ingestor.ingest(png_bytes(color=(0, 255, 0)), "logo.png")
    assert (site_repo / "images" / "logo.png").read_bytes() == png_bytes(color=(0, 255, 0))


def test_path_traversal_is_flattened(ingestor, site_repo):
    result = ingestor.ingest(png_bytes(), "../../evil.png")
    assert result.image_path == "images/evil.png"
    assert (site_repo / "images" / "evil.png").exists()
    assert not (site_repo.parent / "evil.png").exists()


def test_svg_is_accepted_without_decoding(ingestor, site_repo):
    svg = b'<svg xmlns="http://www.w3.org/2000/svg"></svg>'
    result = ingestor.ingest(svg, "icon.svg", "favicon")
    assert result.image_path == "images/icon.svg"
    html = (site_repo / "index.html").read_text(encoding="utf-8")
    assert '<link rel="icon" href="images/icon.svg"/>' in html


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("logo.png", "logo.png"),
        ("../../etc/logo.png", "logo.png"),
        ("C:\\Users\\me\\logo.png", "logo.png"),
        ("my logo.png", "my-logo.png"),
        (".hidden.png", "hidden.png"),
    ],
)
def test_safe_filename(raw, expected):
    assert safe_filename(raw) == expected


@pytest.mark.parametrize("raw", ["", "...", "/", None])
def test_safe_filename_rejects_empty(raw):
    with pytest.raises(ValidationError):
        safe_filename(raw)


def test_rejects_disallowed_extension(ingestor, site_repo):
    with pytest.raises(ValidationError):
        ingestor.ingest(b"MZ", "tool.exe")
    assert list((site_repo / "images").iterdir()) == []


def test_rejects_non_image_bytes(ingestor, site_repo):
    with pytest.raises(ValidationError):
        ingestor.ingest(b"definitely not a png", "logo.png")
    assert not (site_repo / "images" / "logo.png").exists()


def test_rejects_empty_and_oversized(settings, site_repo):
    small = ImageIngestor(ContentLocator.from_settings(settings), DocumentPatcher(), max_size_mb=0)
    with pytest.raises(ValidationError):
        small.ingest(png_bytes(), "logo.png")
    with pytest.raises(ValidationError):
        small.ingest(b"", "logo.png")


def test_missing_container_marks_asset_as_staged(ingestor, site_repo, fixture_html):
    (site_repo / "index.html").write_text(fixture_html.replace('id="hero" ', ""), encoding="utf-8")
    with pytest.raises(NotFoundError) as info:
        ingestor.ingest(png_bytes(), "logo.png", "hero")
    assert info.value.details["staged"] is True
    assert info.value.details["imagePath"] == "images/logo.png"
    assert (site_repo / "images" / "logo.png").exists()
