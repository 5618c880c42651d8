"""
Main entry point for metaproxy (development server).
"""
import os
import logging
from metaproxy import create_app

logging.basicConfig(level=logging.INFO)

app = create_app()

if __name__ == '__main__':
    port = int(os.environ.get("PORT", 5000))

    # Set FLASK_ENV=production to disable debug mode
    debug = os.environ.get('FLASK_ENV') != 'production'

    # For local development, use localhost; for production, use 0.0.0.0
    host = '127.0.0.1' if debug else '0.0.0.0'

    logging.getLogger(__name__).info("Starting metaproxy on http://%s:%s", host, port)
    logging.getLogger(__name__).info("Environment: %s", "Development" if debug else "Production")

    app.run(host=host, port=port, debug=debug)
