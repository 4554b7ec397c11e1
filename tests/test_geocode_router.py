from __future__ import annotations

from app.providers.base import GeocodeResult, GeocodingError


def test_search_returns_suggestions(client, geocoder):
    geocoder.places["Cantonments"] = [
        GeocodeResult("Cantonments, Accra", 5.58, -0.17),
        GeocodeResult("Cantonments Road", 5.57, -0.16),
    ]

    r = client.get("/api/geocode/search", params={"q": "Cantonments"})

    assert r.status_code == 200
    assert r.json() == [
        {"display_name": "Cantonments, Accra", "lat": 5.58, "lng": -0.17},
        {"display_name": "Cantonments Road", "lat": 5.57, "lng": -0.16},
    ]


def test_short_query_returns_nothing_without_lookup(client, geocoder):
    r = client.get("/api/geocode/search", params={"q": "Ac"})

    assert r.json() == []
    assert geocoder.calls == []


def test_search_failure_yields_no_suggestions(client, geocoder):
    geocoder.error = GeocodingError("Nominatim error 503", status_code=503)

    r = client.get("/api/geocode/search", params={"q": "Labone"})

    assert r.status_code == 200
    assert r.json() == []


def test_reverse_labels_point(client, geocoder):
    geocoder.labels[(5.55, -0.2)] = "Osu, Accra"

    r = client.get("/api/geocode/reverse", params={"lat": 5.55, "lng": -0.2})

    assert r.json() == {"display_name": "Osu, Accra", "lat": 5.55, "lng": -0.2}


def test_reverse_falls_back_to_generic_label(client, geocoder):
    geocoder.error = GeocodingError("Nominatim network error: ReadTimeout")

    r = client.get("/api/geocode/reverse", params={"lat": 1.0, "lng": 2.0})

    assert r.status_code == 200
    assert r.json()["display_name"] == "Selected Location"


def test_reverse_rejects_out_of_range_point(client):
    r = client.get("/api/geocode/reverse", params={"lat": 91, "lng": 0})

    assert r.status_code == 422
    assert r.json()["error"]["code"] == "validation_error"
