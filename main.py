"""
Main entry point for the Tiered Inference Gateway.

Initializes all components and starts the FastAPI server.
"""

import os

from dotenv import load_dotenv

load_dotenv()

from common.logging import configure_logging, get_logger
from gateway.api import create_app
from gateway.config import load_gateway_settings
from gateway.service import ChatService
from model_router import HeuristicClassifier, ModelRouter, RoutingContext, load_router_config

log_level = os.getenv("LOG_LEVEL", "INFO")
configure_logging(log_level=log_level)
logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config/default.yaml"


def create_gateway_app(config_path: str = DEFAULT_CONFIG_PATH):
    """
    Create and configure the Gateway application.

    Adapters are built here but initialized by the app's lifespan, inside
    the server's event loop.

    Args:
        config_path: Path to configuration YAML file

    Returns:
        Configured FastAPI app
    """
    logger.info("initializing_model_router", config_path=config_path)
    router_config = load_router_config(config_path)
    context = RoutingContext.from_config(router_config)
    model_router = ModelRouter(context)
    classifier = HeuristicClassifier(router_config.classifier)

    logger.info(
        "model_chains_configured",
        chains={tier.value: list(chain.models) for tier, chain in context.chains.items()},
    )

    settings = load_gateway_settings(config_path)
    service = ChatService.from_settings(classifier, model_router, settings)
    logger.info(
        "chat_service_initialized",
        rate_limit_enabled=settings.rate_limit.enabled,
        cost_tracking_enabled=settings.cost_tracking.enabled,
        pii_masking_enabled=settings.guardrails.pii_masking.enabled,
        content_moderation_enabled=settings.guardrails.content_moderation.enabled,
    )

    return create_app(service, enable_cors=True)


app = create_gateway_app(os.getenv("GATEWAY_CONFIG", DEFAULT_CONFIG_PATH))


if __name__ == "__main__":
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))

    logger.info(
        "starting_gateway_server",
        host=host,
        port=port,
        docs_url=f"http://{host}:{port}/docs",
    )

    # Use import string for reload to work properly
    uvicorn.run("main:app", host=host, port=port, reload=os.getenv("RELOAD", "false").lower() == "true")
