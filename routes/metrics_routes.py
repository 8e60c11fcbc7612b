"""
Metrics Routes for Prometheus Integration
==========================================

Provides endpoints for Prometheus metrics scraping and health checks.

Endpoints:
    /metrics          - Prometheus metrics endpoint
    /health           - Health check endpoint
"""

import time
import logging
from datetime import datetime, timezone
from flask import Response, jsonify

logger = logging.getLogger(__name__)


class MetricsRoutes:
    """
    Route handler for Prometheus metrics and health endpoints.

    These routes do not require authentication so that Prometheus and load
    balancers can scrape metrics and perform health checks.
    """

    def __init__(self, app, metrics, registry=None, controller=None):
        """
        Initialize metrics routes.

        Args:
            app: Flask application instance
            metrics: ArchGraphMetrics instance to expose
            registry: DefinitionRegistry instance (optional)
            controller: ExecutionController instance (optional)
        """
        self.app = app
        self.metrics = metrics
        self.registry = registry
        self.controller = controller
        self._start_time = time.time()

        self._register_routes()
        logger.info("Metrics routes initialized")

    def _register_routes(self):
        """Register all metrics endpoints."""
        self.app.add_url_rule('/metrics', 'prometheus_metrics',
                             self.prometheus_metrics, methods=['GET'])
        self.app.add_url_rule('/health', 'health_check',
                             self.health_check, methods=['GET'])

    def prometheus_metrics(self):
        """Returns metrics in Prometheus text format for scraping."""
        try:
            output = self.metrics.generate_latest()
            return Response(output, mimetype=self.metrics.get_content_type())
        except Exception as e:
            logger.error(f"Error generating metrics: {e}")
            return Response(
                f"# Error generating metrics: {e}\n",
                mimetype='text/plain',
                status=500
            )

    def health_check(self):
        health = {
            'status': 'healthy',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'uptime_seconds': round(time.time() - self._start_time, 3),
            'checks': {}
        }
        if self.registry is not None:
            health['checks']['definitions'] = len(self.registry.list_definitions())
        if self.controller is not None:
            health['checks']['execution_state'] = self.controller.state.value
        return jsonify(health), 200
