"""Core package - device context and the control loop (iriq_node.core.server)"""

from .context import DeviceContext

__all__ = ['DeviceContext']
