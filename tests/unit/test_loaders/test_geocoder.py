import pytest
from unittest.mock import MagicMock, patch

from core.errors import GeocodingError
from core.models import BoundingBox
from core.settings import ShadeSettings
from loaders.geocoder import Geocoder

SARAJEVO = {
    "lat": "43.8519774",
    "lon": "18.3866868",
    "display_name": "Sarajevo, Bosnia and Herzegovina",
    "class": "boundary",
    "type": "administrative",
    "boundingbox": ["43.7", "43.95", "18.2", "18.6"],
}
SARAJEVO_STREET = {
    "lat": "43.86",
    "lon": "18.43",
    "display_name": "Sarajevska, Zenica",
    "class": "highway",
    "type": "residential",
    "boundingbox": ["43.859", "43.861", "18.42", "18.44"],
}


@pytest.fixture
def mock_loader(tmp_path, monkeypatch):
    monkeypatch.setattr("loaders.geocoder._MIN_REQUEST_INTERVAL", 0.0)
    cache_path = str(tmp_path / "test_geo.db")
    with patch('requests.Session') as mock_session:
        loader = Geocoder(ShadeSettings(), cache_path=cache_path)
        loader.session = mock_session.return_value
        yield loader


def respond_with(loader, payload):
    mock_response = MagicMock()
    mock_response.json.return_value = payload
    loader.session.get.return_value = mock_response


def test_search_success(mock_loader):
    """Verify search keeps settlements and parses the bbox hint."""
    respond_with(mock_loader, [SARAJEVO, SARAJEVO_STREET])

    results = mock_loader.search("Sarajevo")
    assert len(results) == 1
    result = results[0]
    assert result.display_name == "Sarajevo, Bosnia and Herzegovina"
    assert result.coordinate.lat == pytest.approx(43.8519774)
    assert result.coordinate.lng == pytest.approx(18.3866868)
    assert result.bounding_box == BoundingBox(43.7, 18.2, 43.95, 18.6)
    assert result.place_type == "administrative"

    args, kwargs = mock_loader.session.get.call_args
    assert args[0] == "https://nominatim.openstreetmap.org/search"
    assert kwargs["params"]["q"] == "Sarajevo"
    assert kwargs["params"]["limit"] == 5


def test_search_is_cached(mock_loader):
    respond_with(mock_loader, [SARAJEVO])
    mock_loader.search("Sarajevo")
    mock_loader.search("  sarajevo ")
    assert mock_loader.session.get.call_count == 1


def test_blank_search_makes_no_request(mock_loader):
    assert mock_loader.search("") == []
    assert mock_loader.search("   ") == []
    mock_loader.session.get.assert_not_called()


def test_search_failure_raises(mock_loader):
    with patch.object(mock_loader, '_make_request', side_effect=ConnectionError("offline")):
        with pytest.raises(GeocodingError):
            mock_loader.search("Sarajevo")


def test_bad_bounding_box_is_dropped(mock_loader):
    broken = dict(SARAJEVO, boundingbox=["43.95", "43.7", "18.2", "18.6"])
    respond_with(mock_loader, [broken])
    result = mock_loader.search("Sarajevo")[0]
    assert result.bounding_box is None


def test_reverse_geocode_success(mock_loader):
    """Verify reverse geocoding success."""
    respond_with(mock_loader, {"display_name": "Ferhadija 12, Sarajevo"})

    name = mock_loader.reverse_geocode(43.8590, 18.4270)
    assert name == "Ferhadija 12, Sarajevo"


def test_reverse_geocode_failure_returns_none(mock_loader):
    with patch.object(mock_loader, '_make_request', side_effect=ConnectionError("offline")):
        assert mock_loader.reverse_geocode(43.8590, 18.4270) is None
