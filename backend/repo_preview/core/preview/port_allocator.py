# -*- coding: utf-8 -*-
"""
Host port allocation for preview containers.

A port is probed by binding a throwaway listening socket and closing it again.
The window between the probe and docker's own bind is not covered; the
in-process reservation table only keeps concurrent previews of this process
apart.
"""

import errno
import logging
import socket
import threading
from typing import Optional, Set

from repo_preview.config.settings import PreviewConfig
from repo_preview.core.preview.exceptions import PortAllocationError

logger = logging.getLogger(__name__)


class PortReservations:
    """Ports handed out to previews that have not been released yet."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ports: Set[int] = set()

    def reserve(self, port: int) -> bool:
        """Reserve port; False if it is already taken."""
        with self._lock:
            if port in self._ports:
                return False
            self._ports.add(port)
            return True

    def release(self, port: Optional[int]) -> None:
        if port is None:
            return
        with self._lock:
            self._ports.discard(port)

    def __contains__(self, port: int) -> bool:
        with self._lock:
            return port in self._ports

    def __len__(self) -> int:
        with self._lock:
            return len(self._ports)


def is_port_free(port: int, host: str = "") -> bool:
    """
    Check whether a TCP port can currently be bound on the host.

    Raises:
        OSError: For bind failures other than "address in use"
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind((host, port))
        sock.listen(1)
        return True
    except OSError as e:
        if e.errno == errno.EADDRINUSE:
            return False
        raise
    finally:
        sock.close()


def find_available_port(
    start_port: Optional[int] = None,
    port_min: Optional[int] = None,
    port_max: Optional[int] = None,
    reservations: Optional[PortReservations] = None,
) -> int:
    """
    Find a free host port, scanning upwards from start_port.

    Args:
        start_port: First port to probe; clamped into [port_min, port_max]
        port_min: Lower bound of the allowed range
        port_max: Upper bound of the allowed range (inclusive)
        reservations: When given, the returned port is reserved in it

    Returns:
        int: An available port number

    Raises:
        PortAllocationError: If every port up to port_max is taken
    """
    port_min = PreviewConfig.PORT_RANGE_START if port_min is None else port_min
    port_max = PreviewConfig.PORT_RANGE_END if port_max is None else port_max
    port = max(start_port or port_min, port_min)

    while port <= port_max:
        if reservations is not None and port in reservations:
            port += 1
            continue
        if is_port_free(port):
            if reservations is None or reservations.reserve(port):
                logger.info(f"Selected available port: {port}")
                return port
        port += 1

    raise PortAllocationError(start=max(start_port or port_min, port_min), end=port_max)
