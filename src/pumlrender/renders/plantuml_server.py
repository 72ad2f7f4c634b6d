"""Render through a remote PlantUML server the user points at."""

from pumlrender.renders.base import ServerRender


class PlantUMLServerRender(ServerRender):
    """No lifecycle to manage: the server is someone else's."""
