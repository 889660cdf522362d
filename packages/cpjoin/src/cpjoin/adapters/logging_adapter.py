"""LoggingPort implementation backed by the standard logging module."""

from __future__ import annotations

import logging


class StdlibLoggingAdapter:
    """Forwards LoggingPort calls to a ``logging.Logger``.

    Messages are prefixed with the node name when one is given, so logs of
    concurrent joins on a shared host stay distinguishable.

    Example:
        >>> logger = StdlibLoggingAdapter(node_name="k8s-cp2")
        >>> logger.info("entering promoting")  # "[k8s-cp2] entering promoting"
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        node_name: str | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            logger: Logger to write to. Defaults to the "cpjoin" logger.
            node_name: Optional node name used as a message prefix.
        """
        self._logger = logger or logging.getLogger("cpjoin")
        self._prefix = f"[{node_name}] " if node_name else ""

    def debug(self, message: str) -> None:
        self._logger.debug("%s%s", self._prefix, message)

    def info(self, message: str) -> None:
        self._logger.info("%s%s", self._prefix, message)

    def warning(self, message: str) -> None:
        self._logger.warning("%s%s", self._prefix, message)

    def error(self, message: str) -> None:
        self._logger.error("%s%s", self._prefix, message)
