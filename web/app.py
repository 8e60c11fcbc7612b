"""
Flask application for the ArchGraph execution engine
"""
import logging
import os
import threading

from flask import Flask

from archgraph.dag.definition_registry import DefinitionRegistry
from archgraph.dag.execution_controller import ExecutionController
from archgraph.engine_config import EngineConfig
from archgraph.metrics import metrics as default_metrics
from archgraph.properties_configurator import PropertiesConfigurator

# Import route handlers
from routes import ExecutionRoutes, DefinitionRoutes, MetricsRoutes

logger = logging.getLogger(__name__)

DEFAULT_PROPERTIES_FILE = 'config/application.properties'


class ArchGraphWebApp:
    """
    ArchGraph Web Application.

    Owns the Flask app, the definition registry and the execution controller.
    get_instance() returns one process-wide instance for the server entry
    point; tests build their own through create_app().
    """
    _instance = None
    _lock = threading.Lock()

    def __init__(self, props: PropertiesConfigurator = None, scheduler=None, metrics=None):
        logger.info("Initializing ArchGraph Web Application...")

        # Initialize Flask app
        self.app = Flask(__name__)

        self.props = props
        self.scheduler = scheduler
        self.metrics = metrics or default_metrics
        self.app_name = "ArchGraph"

        # Initialize component references
        self.engine_config = None
        self.registry = None
        self.controller = None

        # Initialize route handlers references
        self.execution_routes = None
        self.definition_routes = None
        self.metrics_routes = None

        # Perform initialization
        self._load_configuration()
        self._initialize_components()
        self._initialize_routes()

        self.app.extensions['archgraph'] = self
        logger.info("ArchGraph Web Application initialized successfully")

    def _load_configuration(self):
        """Load application configuration from properties file"""
        if self.props is None:
            properties_file = os.environ.get('ARCHGRAPH_PROPERTIES', DEFAULT_PROPERTIES_FILE)
            self.props = PropertiesConfigurator([properties_file])

        self.app.secret_key = self.props.get(
            'flask.secret_key',
            os.environ.get('SECRET_KEY', 'archgraph_secret_key_change_me')
        )
        self.app_name = self.props.get('app.name', 'ArchGraph')
        self.engine_config = EngineConfig.from_properties(self.props)
        logger.info("Configuration loaded successfully")

    def _initialize_components(self):
        """Initialize the registry and the controller"""
        logger.info("Initializing core components...")

        self.registry = DefinitionRegistry()
        self.registry.load_folder(self.engine_config.definitions_folder)

        self.controller = ExecutionController(
            self.registry,
            config=self.engine_config,
            scheduler=self.scheduler,
            metrics=self.metrics,
        )

        logger.info("Core components initialized successfully")

    def _initialize_routes(self):
        """Initialize route handlers with dependency injection"""
        logger.info("Initializing route handlers...")

        self.execution_routes = ExecutionRoutes(self.app, self.controller)
        self.definition_routes = DefinitionRoutes(self.app, self.registry)
        self.metrics_routes = MetricsRoutes(self.app, self.metrics, self.registry, self.controller)

        logger.info("Route handlers initialized successfully")

    def start(self, host='0.0.0.0', port=5002, debug=False):
        """
        Start the Flask web application

        Args:
            host (str): Host address to bind to
            port (int): Port number to listen on
            debug (bool): Enable debug mode
        """
        logger.info(f"Starting ArchGraph Web Application on {host}:{port}")

        try:
            # The reloader would start a second controller with its own timers
            self.app.run(host=host, port=port, debug=debug, use_reloader=False)
        except Exception as e:
            logger.error(f"Error starting web application: {e}")
            raise

    def shutdown(self):
        """Shutdown the web application and cleanup resources"""
        logger.info("Shutting down ArchGraph Web Application...")
        if self.controller:
            self.controller.shutdown()
        logger.info("ArchGraph Web Application shutdown complete")

    @classmethod
    def get_instance(cls, props: PropertiesConfigurator = None):
        """Get the process-wide instance of ArchGraphWebApp"""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls(props=props)
        return cls._instance


def create_app(props: PropertiesConfigurator = None, scheduler=None, metrics=None) -> Flask:
    """Build a Flask app with its own registry and controller"""
    return ArchGraphWebApp(props=props, scheduler=scheduler, metrics=metrics).app
