"""Container reading service."""

from .service import ContainerContents, ContainerService

__all__ = ["ContainerContents", "ContainerService"]
