"""
Sample HTTP application baked into the AMIs.

Endpoints:
- GET /health: Load balancer health check
- GET /: Service info and endpoint map
- GET /info: Application, system and AWS placement details
- GET /metrics: Process uptime, memory and CPU figures
- POST /echo: Echo the JSON request body

Configuration comes from environment variables: PORT, APP_ENV, BUILD_TOOL,
INSTANCE_ID, AWS_REGION, AWS_AZ.
"""

import logging
import os
import platform
import signal
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import psutil
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

APP_NAME = "sample-python-app"
APP_VERSION = "1.0.0"
MB = 1024 * 1024

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def create_app(environ: Optional[Dict[str, str]] = None) -> Flask:
    """
    Build the Flask application.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Configured Flask app
    """
    env = os.environ if environ is None else environ
    app = Flask(__name__)

    environment = env.get("APP_ENV", "development")
    build_tool = env.get("BUILD_TOOL", "unknown")
    instance_id = env.get("INSTANCE_ID", "local")
    started = time.monotonic()
    process = psutil.Process()

    def uptime() -> float:
        return time.monotonic() - started

    @app.get("/health")
    def health():
        mem = process.memory_info()
        return (
            jsonify(
                {
                    "status": "healthy",
                    "timestamp": _timestamp(),
                    "uptime": uptime(),
                    "environment": environment,
                    "version": APP_VERSION,
                    "build_tool": build_tool,
                    "instance_id": instance_id,
                    "memory": {
                        "used": mem.rss / MB,
                        "total": psutil.virtual_memory().total / MB,
                    },
                }
            ),
            200,
        )

    @app.get("/")
    def index():
        return jsonify(
            {
                "message": "Sample Python Application - Packer vs EC2 Image Builder POC",
                "timestamp": _timestamp(),
                "environment": environment,
                "build_tool": build_tool,
                "endpoints": {
                    "health": "/health",
                    "info": "/info",
                    "metrics": "/metrics",
                },
            }
        )

    @app.get("/info")
    def info():
        return jsonify(
            {
                "application": {
                    "name": APP_NAME,
                    "version": APP_VERSION,
                    "environment": environment,
                    "build_tool": build_tool,
                },
                "system": {
                    "platform": sys.platform,
                    "arch": platform.machine(),
                    "python_version": platform.python_version(),
                    "uptime": uptime(),
                    "timestamp": _timestamp(),
                },
                "aws": {
                    "region": env.get("AWS_REGION", "unknown"),
                    "instance_id": instance_id,
                    "availability_zone": env.get("AWS_AZ", "unknown"),
                },
            }
        )

    @app.get("/metrics")
    def metrics():
        mem = process.memory_info()
        cpu = process.cpu_times()
        return jsonify(
            {
                "timestamp": _timestamp(),
                "uptime_seconds": int(uptime()),
                "memory_usage": {
                    "rss_mb": round(mem.rss / MB),
                    "vms_mb": round(mem.vms / MB),
                    "percent": round(process.memory_percent(), 2),
                },
                "cpu_usage": {"user": cpu.user, "system": cpu.system},
                "environment": environment,
                "build_tool": build_tool,
            }
        )

    @app.post("/echo")
    def echo():
        body: Any = request.get_json(silent=True)
        return jsonify(
            {
                "message": "Echo response",
                "received": body if body is not None else {},
                "timestamp": _timestamp(),
            }
        )

    @app.errorhandler(404)
    def not_found(e):
        return (
            jsonify({"error": "Not Found", "path": request.path, "timestamp": _timestamp()}),
            404,
        )

    @app.errorhandler(Exception)
    def internal_error(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.name, "timestamp": _timestamp()}), e.code
        logger.exception(f"Error: {e}")
        return jsonify({"error": "Internal Server Error", "timestamp": _timestamp()}), 500

    return app


def main() -> None:
    """Run the sample app with Flask's built-in server."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
    )
    port = int(os.environ.get("PORT", 3000))
    app = create_app()

    def shutdown(signum, frame):
        logger.info(f"{signal.Signals(signum).name} received, shutting down gracefully...")
        sys.exit(0)

    signal.signal(signal.SIGTERM, shutdown)

    logger.info(f"Sample Python application listening on port {port}")
    logger.info(f"Environment: {os.environ.get('APP_ENV', 'development')}")
    logger.info(f"Build Tool: {os.environ.get('BUILD_TOOL', 'unknown')}")
    logger.info(f"Health check: http://localhost:{port}/health")
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
