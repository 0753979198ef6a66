"""
mobiquo - asyncio client for the Tapatalk XML-RPC forum protocol.
"""

from loguru import logger

__version__ = "0.1.0"

# Library logging is silent until a host calls configure_logging() or logger.enable("mobiquo").
logger.disable("mobiquo")
