#!/usr/bin/env python
"""
Main entry point for the ArchGraph execution server
"""

import os
import sys
import logging
from archgraph.properties_configurator import PropertiesConfigurator
from web.app import ArchGraphWebApp, DEFAULT_PROPERTIES_FILE

logger = logging.getLogger(__name__)


def configure_logging():
    os.makedirs('logs', exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler('logs/archgraph.log'),
            logging.StreamHandler(sys.stdout)
        ]
    )


def main():
    """Main entry point"""
    configure_logging()
    logger.info("Starting ArchGraph execution server")

    webapp = None

    try:
        props = PropertiesConfigurator([os.environ.get('ARCHGRAPH_PROPERTIES', DEFAULT_PROPERTIES_FILE)])
        webapp = ArchGraphWebApp.get_instance(props)

        # Get server configuration
        host = props.get('server.host', '0.0.0.0')
        port = props.get_int('server.port', 5002)
        debug = props.get_bool('server.debug', False)

        logger.info(f"Serving on {host}:{port} (debug={debug})")
        webapp.start(host=host, port=port, debug=debug)

    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt - shutting down gracefully...")
        if webapp:
            webapp.shutdown()
    except Exception as e:
        logger.error(f"Error running server: {str(e)}", exc_info=True)
        if webapp:
            webapp.shutdown()
        sys.exit(1)


if __name__ == '__main__':
    main()
