"""
Main entry point for launching the Medium Writer Backend API server.

This script initializes and runs the FastAPI application defined in route.py,
which exposes bring-your-own-key article generation over OpenAI, Gemini,
Anthropic Claude and OpenRouter.
"""

import uvicorn
import logging
from configs.getConfig import getConfig

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    """
    Launch the FastAPI server with uvicorn using the ``server`` config section.
    """
    try:
        config = getConfig()
        logger.info("Configuration loaded successfully")

        server = config.get('server', {})
        host = server.get('host', '0.0.0.0')
        port = server.get('port', 8000)
        reload = server.get('reload', False)
        workers = server.get('workers', 1)

        logger.info("Starting Medium Writer Backend API")
        logger.info(f"  Host: {host}")
        logger.info(f"  Port: {port}")
        logger.info(f"  Workers: {workers}")
        logger.info(f"  Reload: {reload}")

        logger.info("Available Endpoints:")
        logger.info("  GET  /health-check - Health check endpoint")
        logger.info("  GET  /api/providers - Supported providers")
        logger.info("  POST /api/validate-key - API key validation")
        logger.info("  GET  /api/models - Model catalog grouped by provider")
        logger.info("  POST /api/generate - Single-shot generation")
        logger.info("  POST /api/generate-structured - JSON generation with recovery")
        logger.info("  POST /api/generate-stream - Streaming generation (SSE)")
        logger.info(f"API Documentation available at http://{host}:{port}/docs")

        # Import string is required when using 'reload' or 'workers'
        uvicorn.run(
            "route:app",
            host=host,
            port=port,
            reload=reload,
            workers=workers if not reload else 1,
            log_level="info"
        )

    except Exception as e:
        logger.error(f"Failed to start server: {str(e)}", exc_info=True)
        raise


if __name__ == "__main__":
    main()
