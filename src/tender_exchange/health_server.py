"""
Health check HTTP server for Kubernetes liveness and readiness probes.

Reports whether the exchange's SQLite store is reachable and how many records
it holds.
"""

from pathlib import Path
from typing import Any

from flask import Flask, jsonify

from tender_exchange import __version__
from tender_exchange.kernel.errors import StoreUnavailableError
from tender_exchange.kernel.logging import get_logger
from tender_exchange.store import SQLiteStore

logger = get_logger(__name__)

app = Flask(__name__)

SERVICE_NAME = "tender-exchange"

# Set by initialize_health_server()
_db_path: Path | None = None


def initialize_health_server(db_path: str | Path) -> None:
    """
    Point the health endpoints at an exchange database.

    Args:
        db_path: Path to SQLite database
    """
    global _db_path
    _db_path = Path(db_path)
    logger.info("Health server initialized", db_path=str(_db_path))


@app.route("/health/live", methods=["GET"])
def liveness() -> tuple[Any, int]:
    """
    Liveness probe - checks if the process is running.

    Kubernetes will restart the pod if this fails.
    """
    return jsonify({"status": "alive", "service": SERVICE_NAME}), 200


@app.route("/health/ready", methods=["GET"])
def readiness() -> tuple[Any, int]:
    """
    Readiness probe - checks if the service is ready to accept requests.

    Checks:
    - Database path is configured
    - Database file exists
    - Tenders table can be counted

    Returns:
        JSON response with status and 200 OK if ready, 503 if not ready
    """
    if _db_path is None:
        logger.error("Readiness check failed: DB path not initialized")
        return (
            jsonify({"status": "not_ready", "reason": "database_path_not_initialized"}),
            503,
        )

    if not _db_path.exists():
        logger.error("Readiness check failed: DB file does not exist", db_path=str(_db_path))
        return (
            jsonify(
                {
                    "status": "not_ready",
                    "reason": "database_file_not_found",
                    "db_path": str(_db_path),
                }
            ),
            503,
        )

    try:
        store = SQLiteStore(_db_path)
        tender_count = store.count_rows()["tenders"]
    except StoreUnavailableError as e:
        logger.error("Readiness check failed: store unavailable", error=str(e))
        return (
            jsonify(
                {
                    "status": "not_ready",
                    "reason": "database_operational_error",
                    "error": str(e),
                }
            ),
            503,
        )

    logger.debug("Readiness check passed", tender_count=tender_count)
    return (
        jsonify({"status": "ready", "database": "accessible", "tender_count": tender_count}),
        200,
    )


@app.route("/health", methods=["GET"])
def detailed_health() -> tuple[Any, int]:
    """
    Detailed health check - row counts per table and database size.

    Returns:
        JSON response, 200 when healthy and 503 when degraded
    """
    health_data: dict[str, Any] = {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": __version__,
    }

    if _db_path is None or not _db_path.exists():
        health_data["database"] = {"status": "not_initialized"}
        health_data["status"] = "degraded"
    else:
        try:
            store = SQLiteStore(_db_path)
            counts = store.count_rows()
            size_mb = store.db_path.stat().st_size / (1024 * 1024)
            health_data["database"] = {
                "status": "healthy",
                "path": str(store.db_path),
                "counts": counts,
                "size_mb": round(size_mb, 2),
            }
        except StoreUnavailableError as e:
            logger.error("Database health check failed", error=str(e))
            health_data["database"] = {"status": "unhealthy", "error": str(e)}
            health_data["status"] = "degraded"

    status_code = 200 if health_data["status"] == "healthy" else 503
    return jsonify(health_data), status_code


def run_health_server(port: int = 8080, debug: bool = False) -> None:
    """
    Run the health check server.

    Args:
        port: Port to listen on (default: 8080)
        debug: Enable Flask debug mode (default: False)
    """
    logger.info("Starting health check server", port=port)
    app.run(host="0.0.0.0", port=port, debug=debug)
