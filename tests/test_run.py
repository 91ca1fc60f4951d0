import json

import pytest

import run
from restaurant_booking import config
from restaurant_booking.geocoding import ResolutionError
from restaurant_booking.models import Coordinate, Place


class FakeOrchestrator:
    def __init__(self, places=None, error=None):
        self.places = places or []
        self.error = error
        self.requests = []

    def search(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return list(self.places)

    def get_performance_metrics(self):
        return {"avg_latency_ms": 12.5, "failure_count": 0, "total_samples": 2, "cache_size": 2, "circuit_open": False}


def make_place(place_id, rating):
    return Place(
        place_id=place_id,
        display_name=f"Place {place_id}",
        address="addr",
        coordinate=Coordinate(25.03, 121.56),
        maps_url="https://maps.example",
        rating_value=rating,
        rating_count=40,
        phone="+886 2 1234 5678",
        distance_meters=120.0,
    )


@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch, tmp_path):
    monkeypatch.setattr(run, "_load_dotenv", lambda **kwargs: None)
    return tmp_path


def base_args(tmp_path):
    return ["--config", str(tmp_path / "missing.json")]


def test_build_request_defaults_to_configured_center(tmp_path):
    args = run.parse_args(base_args(tmp_path))
    request = run.build_request(args)
    assert request.origin == Coordinate(config.DEFAULT_LATITUDE, config.DEFAULT_LONGITUDE)
    assert request.place_name is None
    assert request.radius_meters == config.DEFAULT_SEARCH_RADIUS_M


def test_build_request_with_place_and_cuisines(tmp_path):
    argv = base_args(tmp_path) + ["--place", "Shibuya", "--cuisine", "Japanese", "--cuisine", "Korean"]
    request = run.build_request(run.parse_args(argv))
    assert request.origin is None
    assert request.place_name == "Shibuya"
    assert request.cuisine_filters == ("Japanese", "Korean")


def test_main_prints_ranked_report(tmp_path, capsys):
    out_path = tmp_path / "report.json"
    orchestrator = FakeOrchestrator([make_place("a", 3.9), make_place("b", 4.8)])
    argv = base_args(tmp_path) + ["--lat", "25.03", "--lon", "121.56", "--top", "1", "--booking", "--out", str(out_path)]

    assert run.main(argv, orchestrator=orchestrator) == 0

    report = json.loads(capsys.readouterr().out)
    assert report["totalFound"] == 2
    assert [r["restaurant"]["placeId"] for r in report["recommendations"]] == ["b"]
    assert "Phone: +886 2 1234 5678" in report["recommendations"][0]["bookingInstructions"]
    assert json.loads(out_path.read_text(encoding="utf-8")) == report


def test_main_no_results_message(tmp_path, capsys):
    assert run.main(base_args(tmp_path), orchestrator=FakeOrchestrator()) == 0
    assert run.NO_RESULTS_MESSAGE in capsys.readouterr().out


def test_main_reports_resolution_error(tmp_path, capsys):
    orchestrator = FakeOrchestrator(error=ResolutionError("No location found for place name: Atlantis"))

    code = run.main(base_args(tmp_path) + ["--place", "Atlantis", "--metrics"], orchestrator=orchestrator)

    captured = capsys.readouterr()
    assert code == 1
    assert "Atlantis" in captured.err
    assert '"avg_latency_ms": 12.5' in captured.err


def test_main_rejects_invalid_radius(tmp_path):
    assert run.main(base_args(tmp_path) + ["--radius", "-5"], orchestrator=FakeOrchestrator()) == 2


def test_main_requires_api_key(tmp_path, monkeypatch):
    monkeypatch.delenv("GOOGLE_MAPS_API_KEY", raising=False)
    assert run.main(base_args(tmp_path)) == 1


@pytest.mark.parametrize("flag", ["--radius", "--top", "--concurrency"])
def test_main_rejects_zero_options(tmp_path, flag, capsys):
    orchestrator = FakeOrchestrator([make_place("a", 4.0)])

    assert run.main(base_args(tmp_path) + [flag, "0"], orchestrator=orchestrator) == 2
    assert "Error:" in capsys.readouterr().err
    assert orchestrator.requests == []


def test_build_request_keeps_explicit_radius(tmp_path):
    request = run.build_request(run.parse_args(base_args(tmp_path) + ["--radius", "350"]))
    assert request.radius_meters == 350
