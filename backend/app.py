"""
=============================================================================
SLAB ELECTRICITY TRACKER - MAIN FLASK APPLICATION
=============================================================================

Backend for the energy-monitor dashboard. A meter (e.g. an ESP32 with a
voltage/current sensor) posts readings; the dashboard reads them back and
asks for the cost of a time window under slab-based pricing.

REST API endpoints (all under /api):
- Readings:  POST /readings, GET /readings, GET /readings/latest,
             GET /readings/hourly
- Pricing:   GET /pricing-slabs, POST /pricing/update
- Cost:      POST /cost/calculate, GET /cost/summary, GET /cost/realtime
- Health:    GET /health

Optional AWS service:
- DynamoDB: archive every reading and reload the newest ones on start-up

How to run:
    python -m backend.app

Then visit: http://127.0.0.1:5000/api/health
=============================================================================
"""

# =============================================================================
# IMPORTS
# =============================================================================

import logging
import os

from flask import Flask, request, jsonify

# dotenv - Load environment variables from .env file
from dotenv import load_dotenv

# Load environment variables from .env file
# This must be called before accessing any environment variables
load_dotenv()

from backend.lib.slab_billing.errors import (
    ConfigurationError,
    InvalidRangeError,
    PayloadError,
    SlabBillingError,
    ValidationError,
)
from backend.lib.slab_billing.estimator import round_cost
from backend.lib.slab_billing.io import (
    billing_result_to_dict,
    hourly_average_to_dict,
    parse_reading_payload,
    parse_slabs,
    parse_timestamp,
    reading_to_dict,
    slab_to_dict,
)
from backend.lib.slab_billing.processor import ReadingAnalyzer
from backend.lib.slab_billing.service import BillingService
from backend.lib.slab_billing.stores import DEFAULT_CAPACITY, PricingSlabStore, ReadingStore

# =============================================================================
# CONFIGURATION
# =============================================================================

logger = logging.getLogger(__name__)

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def log_level_from_env() -> str:
    """LOG_LEVEL if it names a logging level, otherwise INFO."""
    level = os.getenv('LOG_LEVEL', 'INFO').strip().upper()
    if level not in LOG_LEVELS:
        logger.warning("Unknown LOG_LEVEL=%r; using INFO", level)
        return 'INFO'
    return level


def capacity_from_env() -> int:
    """
    READINGS_CAPACITY as a positive integer.
    A malformed value is logged and replaced by DEFAULT_CAPACITY.
    """
    raw = os.getenv('READINGS_CAPACITY', str(DEFAULT_CAPACITY))
    try:
        capacity = int(raw)
    except ValueError:
        logger.warning("READINGS_CAPACITY=%r is not an integer; using %d", raw, DEFAULT_CAPACITY)
        return DEFAULT_CAPACITY
    if capacity < 1:
        logger.warning("READINGS_CAPACITY=%d must be >= 1; using %d", capacity, DEFAULT_CAPACITY)
        return DEFAULT_CAPACITY
    return capacity


logging.basicConfig(
    level=log_level_from_env(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

READINGS_CAPACITY = capacity_from_env()

API = "/api"

# Status codes for the core error taxonomy
ERROR_STATUS = {
    ValidationError: 400,
    InvalidRangeError: 400,
    PayloadError: 400,
    ConfigurationError: 500,
}


def create_app(reading_store: ReadingStore = None,
               slab_store: PricingSlabStore = None,
               archive=None) -> Flask:
    """
    Build the Flask application around explicit stores.

    Args:
        reading_store: bounded reading history (default: READINGS_CAPACITY)
        slab_store:    active pricing schedule (default: the built-in slabs)
        archive:       optional DynamoDBReadingArchive; when given, the reading
                       store is warmed from it and every new reading is
                       written through to it

    Example:
        app = create_app()
        client = app.test_client()
        client.get("/api/pricing-slabs")
    """
    if reading_store is None:
        reading_store = ReadingStore(capacity=READINGS_CAPACITY)
    if slab_store is None:
        slab_store = PricingSlabStore()

    if archive is not None:
        for r in archive.load_recent(reading_store.capacity):
            reading_store.append(r)
        logger.info("Loaded %d readings from DynamoDB", len(reading_store))

    service = BillingService(
        reading_store,
        slab_store,
        archive=archive.put_reading if archive is not None else None,
    )

    app = Flask(__name__)
    app.config["BILLING_SERVICE"] = service
    app.config["DYNAMODB_ENABLED"] = archive is not None

    # =========================================================================
    # ERROR HANDLING
    # =========================================================================

    @app.errorhandler(SlabBillingError)
    def handle_billing_error(error):
        """
        Translate core errors into JSON responses.

        400: malformed schedule, window or reading payload
        500: no pricing schedule configured
        """
        status = next(
            (code for cls, code in ERROR_STATUS.items() if isinstance(error, cls)),
            400,
        )
        if status >= 500:
            logger.error("Billing failed: %s", error)
        return jsonify({"error": str(error)}), status

    # =========================================================================
    # API ROUTES - READINGS
    # =========================================================================

    @app.route(f"{API}/readings", methods=["POST"])
    @app.route(f"{API}/readings/update", methods=["POST"])
    def post_reading():
        """
        Store a new reading sent by the meter.

        Request Body (JSON):
            {"voltage": 221.4, "current": 2.31, "power": 0.5114}

        power (kW) may be omitted; it is then derived as voltage * current / 1000.
        The server assigns id and timestamp.

        HTTP Status Codes:
            201: Created - returns the stored reading
            400: Bad Request - missing or non-numeric field
        """
        values = parse_reading_payload(request.get_json(silent=True))
        reading = service.record_reading(**values)
        return jsonify(reading_to_dict(reading)), 201

    @app.route(f"{API}/readings/latest", methods=["GET"])
    def latest_reading():
        """
        Most recent reading, or 404 when nothing has been recorded yet.
        """
        reading = service.reading_store.latest()
        if reading is None:
            return jsonify({"error": "No readings available"}), 404
        return jsonify(reading_to_dict(reading))

    @app.route(f"{API}/readings", methods=["GET"])
    def get_readings():
        """
        Up to `limit` most recent readings, oldest first.

        Query Parameters:
            limit (optional): default 100

        Returns a bare JSON list (not wrapped in an object).
        """
        try:
            limit = int(request.args.get("limit", DEFAULT_CAPACITY))
        except ValueError:
            return jsonify({"error": "limit must be an integer"}), 400
        readings = service.reading_store.recent(limit)
        return jsonify([reading_to_dict(r) for r in readings])

    @app.route(f"{API}/readings/hourly", methods=["GET"])
    def hourly_readings():
        """
        Average voltage, current and power per hour of day.

        Query Parameters:
            limit (optional): number of hours to return (default: 12)

        Example Response:
            [{"hour": "14:00", "avgVoltage": 220.9, "avgCurrent": 2.41,
              "avgPower": 0.532, "samples": 4}]
        """
        try:
            limit = int(request.args.get("limit", 12))
        except ValueError:
            return jsonify({"error": "limit must be an integer"}), 400
        analyzer = ReadingAnalyzer(service.reading_store.all())
        return jsonify([hourly_average_to_dict(h) for h in analyzer.hourly_averages(limit)])

    # =========================================================================
    # API ROUTES - PRICING
    # =========================================================================

    @app.route(f"{API}/pricing-slabs", methods=["GET"])
    @app.route(f"{API}/pricing/pricing-slabs", methods=["GET"])
    def get_pricing_slabs():
        """
        Active pricing schedule.

        Example Response:
            {"slabs": [{"minUnits": 0, "maxUnits": 20, "pricePerUnit": 3.5},
                       ...
                       {"minUnits": 100, "maxUnits": null, "pricePerUnit": 10.0}]}
        """
        return jsonify({"slabs": [slab_to_dict(s) for s in service.slab_store.current()]})

    @app.route(f"{API}/pricing/update", methods=["POST"])
    def update_pricing_slabs():
        """
        Replace the whole pricing schedule.

        Request Body (JSON):
            {"slabs": [{"minUnits": 0, "maxUnits": 20, "pricePerUnit": 3.5}, ...]}

        The slabs are sorted by minUnits and must start at 0, be contiguous
        and end with one unbounded slab (maxUnits null). On a 400 the previous
        schedule stays active.
        """
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object with slabs")
        schedule = service.slab_store.update(parse_slabs(data.get("slabs")))
        return jsonify({"slabs": [slab_to_dict(s) for s in schedule]})

    # =========================================================================
    # API ROUTES - COST
    # =========================================================================

    @app.route(f"{API}/cost/calculate", methods=["POST"])
    def calculate_cost():
        """
        Energy and slab-priced cost for a time window.

        Request Body (JSON), either:
            {"startDate": "2025-11-01T00:00:00.000Z", "endDate": "2025-11-02T00:00:00.000Z"}
        or a dashboard preset:
            {"range": "24h"}          (1h, 6h, 12h, 24h, 7d)

        Example Response:
            {
                "totalEnergy": 45.0,
                "totalCost": 217.5,
                "slabBreakdown": [
                    {"range": "0-20", "units": 20, "pricePerUnit": 3.5, "cost": 70.0},
                    ...
                ],
                "readingsCount": 12
            }
        """
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            raise InvalidRangeError("Request body must be a JSON object with startDate and endDate, or range")
        if data.get("range"):
            result = service.calculate_cost_for_range(str(data["range"]))
        else:
            start = parse_timestamp(data.get("startDate"))
            end = parse_timestamp(data.get("endDate"))
            result = service.calculate_cost(start, end)
        return jsonify(billing_result_to_dict(result))

    @app.route(f"{API}/cost/summary", methods=["GET"])
    def cost_summary():
        """Energy and cost over every reading still held in memory."""
        return jsonify(billing_result_to_dict(service.summarize()))

    @app.route(f"{API}/cost/realtime", methods=["GET"])
    def cost_realtime():
        """
        Cost per hour at the latest reading's power.

        Priced at the first slab, like the dashboard's Cost/Hour card.
        """
        latest = service.reading_store.latest()
        return jsonify({
            "power": latest.power if latest else 0.0,
            "costPerHour": round_cost(service.realtime_cost_per_hour()),
        })

    # =========================================================================
    # API ROUTES - STATUS
    # =========================================================================

    @app.route(f"{API}/health", methods=["GET"])
    def health():
        return jsonify({
            "status": "ok",
            "readings": len(service.reading_store),
            "dynamodb_enabled": app.config["DYNAMODB_ENABLED"],
        })

    return app


def create_app_from_env() -> Flask:
    """Application wired from environment variables (DynamoDB if USE_DYNAMODB=true)."""
    archive = None
    if os.getenv('USE_DYNAMODB', 'false').lower() == 'true':
        from backend.lib.dynamodb_service import archive_from_env
        archive = archive_from_env()
    return create_app(archive=archive)


if __name__ == "__main__":
    create_app_from_env().run(debug=True)
