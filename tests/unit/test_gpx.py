"""
Unit tests for GPX export.
"""

from datetime import datetime, timezone

import pytest

from apex.core.errors import ExportError
from apex.core.models import Ride, RoutePath
from apex.services.gpx import export_gpx, generate_gpx, gpx_filename, point_time

START = datetime(2025, 1, 5, 8, 30, tzinfo=timezone.utc)
END = datetime(2025, 1, 5, 9, 0, tzinfo=timezone.utc)


def make_ride(coordinates=((77.59, 12.97), (77.60, 12.98), (77.61, 12.99)), **kwargs):
    fields = dict(
        id="r1",
        bike_id="b1",
        user_id="u1",
        start_time=START,
        end_time=END,
        distance_km=12.3456,
        route_path=RoutePath(coordinates=list(coordinates)),
    )
    fields.update(kwargs)
    return Ride(**fields)


class TestGenerateGpx:
    """Tests for the GPX document."""

    def test_header_and_metadata(self):
        document = generate_gpx(make_ride())
        assert document.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert 'creator="Apex App"' in document
        assert "<name>Apex Ride</name>" in document
        assert "<time>2025-01-05T08:30:00.000Z</time>" in document
        assert "<desc>Distance: 12.35 km, Duration: 30:00</desc>" in document

    def test_track_points_interpolated(self):
        document = generate_gpx(make_ride())
        assert document.count("<trkpt ") == 3
        assert '<trkpt lat="12.97" lon="77.59">' in document
        assert "<time>2025-01-05T08:45:00.000Z</time>" in document
        assert "<time>2025-01-05T09:00:00.000Z</time>" in document

    def test_name_escaped(self):
        document = generate_gpx(make_ride(ride_name='Ghats & "Hairpins"'))
        assert "<name>Ghats &amp; &quot;Hairpins&quot;</name>" in document

    def test_unfinished_ride_has_no_duration(self):
        document = generate_gpx(make_ride(end_time=None))
        assert "<desc>Distance: 12.35 km</desc>" in document

    def test_no_route(self):
        with pytest.raises(ExportError, match="no route path data"):
            generate_gpx(make_ride(route_path=None))

    def test_empty_route(self):
        with pytest.raises(ExportError, match="no route path coordinates"):
            generate_gpx(make_ride(coordinates=()))


class TestPointTime:
    def test_spread_evenly(self):
        assert point_time(START, END, 1, 3) == datetime(2025, 1, 5, 8, 45, tzinfo=timezone.utc)

    def test_single_point_or_open_ride(self):
        assert point_time(START, END, 0, 1) == START
        assert point_time(START, None, 5, 10) == START


def test_filename():
    assert gpx_filename(make_ride()) == "ride_2025-01-05.gpx"


class TestExportGpx:
    def test_writes_file(self, services, bike, make_summary, tmp_path):
        ride = services.rides.save(make_summary(), bike.id)
        path = export_gpx(services.rides, ride.id, tmp_path / "exports")
        assert path == tmp_path / "exports" / "ride_2025-01-05.gpx"
        assert path.read_text(encoding="utf-8").count("<trkpt ") == 4

    def test_unknown_ride(self, services, tmp_path):
        with pytest.raises(ExportError, match="Ride not found"):
            export_gpx(services.rides, "missing", tmp_path)
