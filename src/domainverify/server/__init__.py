"""HTTP API server for domain verification."""

from domainverify.server.app import DomainApiHandler, build_service, create_app

__all__ = ["DomainApiHandler", "build_service", "create_app"]
