from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQUEST_LATENCY_SECONDS = Histogram(
    "estate_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status_code"),
)

UPLOAD_RESULTS_TOTAL = Counter(
    "estate_upload_results_total",
    "Image upload outcomes",
    labelnames=("outcome",),
)

STORED_IMAGE_BYTES = Histogram(
    "estate_stored_image_bytes",
    "Bytes written to the image store per upload, after optional compression",
    labelnames=("compressed",),
    buckets=(16_384, 65_536, 262_144, 1_048_576, 2_097_152, 5_242_880),
)

GEOCODER_CALL_RESULTS_TOTAL = Counter(
    "estate_geocoder_call_results_total",
    "Geocoder call results by operation and outcome",
    labelnames=("operation", "outcome"),
)

PROPERTY_WRITES_TOTAL = Counter(
    "estate_property_writes_total",
    "Listing create attempts by outcome",
    labelnames=("outcome",),
)


def record_request_latency(*, method: str, path: str, status_code: int, duration_seconds: float) -> None:
    REQUEST_LATENCY_SECONDS.labels(method=method, path=path, status_code=str(status_code)).observe(
        duration_seconds
    )


def record_upload_result(*, outcome: str) -> None:
    UPLOAD_RESULTS_TOTAL.labels(outcome=outcome).inc()


def record_stored_image(*, stored_bytes: int, compressed: bool) -> None:
    STORED_IMAGE_BYTES.labels(compressed=str(compressed).lower()).observe(max(stored_bytes, 0))


def record_geocoder_call(*, operation: str, error: str | None, hit: bool) -> None:
    if error:
        outcome = "error"
    else:
        outcome = "hit" if hit else "miss"
    GEOCODER_CALL_RESULTS_TOTAL.labels(operation=operation, outcome=outcome).inc()


def record_property_write(*, outcome: str) -> None:
    PROPERTY_WRITES_TOTAL.labels(outcome=outcome).inc()


def metrics_payload() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
