from __future__ import annotations

import asyncio

import httpx
import pytest

from app.client.api import EstateApiClient, ImageUpload
from app.client.workflow import CreatePropertyWorkflow, PropertyForm, WorkflowState
from app.core.errors import InvalidInputError
from app.main import create_app
from app.providers.base import GeocodeResult, GeocodingError


def _form(**overrides) -> PropertyForm:
    values = {
        "name": "Garden house",
        "location": "East Legon, Accra",
        "description": "Detached house with a garden",
        "price": "250000",
        "beds": "4",
        "baths": "3",
        "area": "320.5",
    }
    values.update(overrides)
    return PropertyForm(**values)


def _submit(app, form: PropertyForm, geocoder=None, progress: list | None = None):
    async def _run():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
            workflow = CreatePropertyWorkflow(
                EstateApiClient(http),
                geocoder,
                on_progress=(lambda pct, state: progress.append((pct, state))) if progress is not None else None,
            )
            try:
                return workflow, await workflow.submit(form)
            except Exception as exc:
                return workflow, exc

    return asyncio.run(_run())


def test_submit_without_files_uses_placeholder_images(app, geocoder):
    workflow, result = _submit(app, _form(), geocoder)

    assert result.persisted is True
    assert result.listing.images == ["placeholder1", "placeholder2", "placeholder3"]
    assert [item.id for item in result.listings] == [result.listing.id]
    assert workflow.state is WorkflowState.IDLE
    assert workflow.progress == 100


def test_uploaded_image_ids_keep_slot_order(app, blob_store):
    files = [
        ImageUpload("front.jpg", b"\xff\xd8front" * 50, "image/jpeg"),
        None,
        ImageUpload("kitchen.png", b"\x89PNGkitchen" * 10, "image/png"),
        ImageUpload("garden.webp", b"RIFFgarden" * 500, "image/webp"),
    ]

    _, result = _submit(app, _form(files=files))

    assert result.persisted is True
    assert len(result.listing.images) == 3
    expected = [f for f in files if f is not None]
    for image_id, upload in zip(result.listing.images, expected, strict=True):
        stored = blob_store.get(image_id)
        assert stored.read() == upload.content
        assert stored.content_type == upload.content_type


def test_picked_map_point_wins_over_location_text(app, geocoder):
    geocoder.places["East Legon, Accra"] = [GeocodeResult("East Legon", 5.63, -0.16)]
    form = _form(lat=5.55, lng=-0.20, location_name="Osu, Accra")

    _, result = _submit(app, form, geocoder)

    assert result.listing.lat == 5.55
    assert result.listing.lng == -0.20
    assert result.listing.location == "Osu, Accra"
    assert geocoder.calls == []


def test_location_text_is_geocoded_to_first_result(app, geocoder):
    geocoder.places["East Legon, Accra"] = [
        GeocodeResult("East Legon, Accra, Ghana", 5.635, -0.161),
        GeocodeResult("East Legon Hills", 5.70, -0.10),
    ]

    _, result = _submit(app, _form(), geocoder)

    assert (result.listing.lat, result.listing.lng) == (5.635, -0.161)
    assert result.listing.location == "East Legon, Accra"
    assert geocoder.calls == [("search", "East Legon, Accra")]


def test_geocoder_failure_leaves_coordinates_at_origin(app, geocoder):
    geocoder.error = GeocodingError("Nominatim network error: ReadTimeout")

    _, result = _submit(app, _form(), geocoder)

    assert result.persisted is True
    assert (result.listing.lat, result.listing.lng) == (0, 0)


def test_geocoder_without_match_leaves_coordinates_at_origin(app, geocoder):
    _, result = _submit(app, _form(location="Nowhere in particular"), geocoder)

    assert (result.listing.lat, result.listing.lng) == (0, 0)


def test_failed_create_falls_back_to_local_mock_record(broken_database, geocoder):
    app = create_app(database=broken_database, geocoder=geocoder)

    workflow, result = _submit(app, _form(), geocoder)

    assert result.persisted is False
    assert result.error is not None
    assert result.error.code == "storage_unavailable"
    assert result.listing.id.startswith("mock_")
    assert result.listing.id != "mock_"
    assert result.listing.name == "Garden house"
    assert result.listing.price == 250000
    assert result.listing.beds == 4
    assert result.listing.baths == 3
    assert result.listing.area == 320.5
    assert result.listings == []
    assert workflow.state is WorkflowState.IDLE


def test_rejected_create_also_falls_back_to_mock_record(app):
    _, result = _submit(app, _form(name=""))

    assert result.persisted is False
    assert result.error.code == "validation_error"
    assert result.listing.id.startswith("mock_")
    assert result.listing.name == ""


def test_any_failed_upload_aborts_the_submission(app, blob_store):
    files = [
        ImageUpload("ok.jpg", b"\xff\xd8fine", "image/jpeg"),
        ImageUpload("notes.txt", b"not an image", "text/plain"),
    ]

    workflow, outcome = _submit(app, _form(files=files))

    assert isinstance(outcome, InvalidInputError)
    assert "Only image files are allowed" in outcome.message
    assert workflow.state is WorkflowState.IDLE
    with app.state.database.session() as session:
        from app.services.properties import list_properties

        assert list_properties(session) == []


def test_unparseable_number_fails_before_uploading(app, database):
    files = [ImageUpload("ok.jpg", b"\xff\xd8fine", "image/jpeg")]

    workflow, outcome = _submit(app, _form(price="a lot", files=files))

    assert isinstance(outcome, InvalidInputError)
    assert workflow.progress == 0
    from sqlalchemy import func, select

    from app.db.models import ImageFile

    with database.session() as session:
        assert session.execute(select(func.count()).select_from(ImageFile)).scalar_one() == 0


def test_blank_numbers_coerce_to_zero(app):
    _, result = _submit(app, _form(price="0", beds="", baths=" ", area=""))

    assert (result.listing.price, result.listing.beds, result.listing.baths, result.listing.area) == (0, 0, 0, 0)


def test_progress_checkpoints_with_files(app):
    progress: list = []
    files = [ImageUpload("a.jpg", b"\xff\xd8a", "image/jpeg")]

    _submit(app, _form(files=files), progress=progress)

    assert progress == [
        (10, WorkflowState.UPLOADING),
        (60, WorkflowState.UPLOADING),
        (70, WorkflowState.GEOCODING),
        (80, WorkflowState.PERSISTING),
        (100, WorkflowState.PERSISTING),
    ]


def test_progress_checkpoints_without_files(app):
    progress: list = []

    _submit(app, _form(), progress=progress)

    assert [pct for pct, _ in progress] == [70, 80, 100]


@pytest.mark.parametrize(
    ("labels", "error", "expected"),
    [
        ({(5.55, -0.2): "Osu, Accra, Ghana"}, None, "Osu, Accra, Ghana"),
        ({}, None, "Selected Location"),
        ({}, GeocodingError("boom"), "Selected Location"),
    ],
)
def test_pick_location_labels_the_point(geocoder, labels, error, expected):
    geocoder.labels.update(labels)
    geocoder.error = error
    form = _form()

    async def _run():
        async with httpx.AsyncClient(base_url="http://unused") as http:
            workflow = CreatePropertyWorkflow(EstateApiClient(http), geocoder)
            return await workflow.pick_location(form, 5.55, -0.2)

    label = asyncio.run(_run())

    assert label == expected
    assert form.location_name == expected
    assert (form.lat, form.lng) == (5.55, -0.2)
    assert form.has_point


def _run_offline(handler, form: PropertyForm):
    async def _run():
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url="http://estate.test"
        ) as http:
            workflow = CreatePropertyWorkflow(EstateApiClient(http))
            return workflow, await workflow.submit(form)

    return asyncio.run(_run())


def test_unreachable_api_still_yields_mock_record():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    workflow, result = _run_offline(handler, PropertyForm(name="n", location="l", description="d", price="1"))

    assert result.persisted is False
    assert result.error.code == "storage_unavailable"
    assert result.listing.id.startswith("mock_")
    assert (result.listing.name, result.listing.price) == ("n", 1)
    assert result.listings == []
    assert workflow.state is WorkflowState.IDLE
    assert workflow.progress == 100


def test_failed_refresh_keeps_created_listing():
    created = {
        "id": "b" * 32,
        "images": ["placeholder1", "placeholder2", "placeholder3"],
        "name": "Garden house",
        "location": "East Legon, Accra",
        "description": "Detached house with a garden",
        "lat": 0,
        "lng": 0,
        "price": 250000,
        "beds": 4,
        "baths": 3,
        "area": 320.5,
        "createdAt": "2025-01-01T00:00:00+00:00",
    }

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json=created)
        return httpx.Response(500, json={"error": {"message": "internal error", "code": "internal_error"}})

    _, result = _run_offline(handler, _form())

    assert result.persisted is True
    assert result.listing.id == "b" * 32
    assert result.listings == []
