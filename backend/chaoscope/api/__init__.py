from chaoscope.api.routes import create_proxy_app, create_discovery_app

__all__ = ["create_proxy_app", "create_discovery_app"]
