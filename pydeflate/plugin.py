"""Plugin entry point for hosts that load pydeflate as a component."""

from typing import List, Optional

from .compression import Compression
from .config import Config
from .constants import Constants, constants
from .logger import Logger
from .metrics import CompressionMetrics


__version__ = "1.0.0"


class CompressionPlugin:
    """Hands out Compression facades that share one configuration.

    The configuration is passed in explicitly (or loaded by ``Config``);
    facades never read process-wide state.
    """

    name = "pydeflate"
    version = __version__
    dependencies: List[str] = []

    def __init__(self, config: Optional[Config] = None):
        self.config = None
        self.logger = None
        self.metrics = None
        if config is not None:
            self.init(config)

    def init(self, config: Optional[Config] = None):
        """Bind the plugin to a configuration, loading the default one if none is given."""
        self.config = config if config is not None else Config()
        self.logger = Logger("compression", level=self.config.get("logging", "level", "INFO"))
        self.metrics = CompressionMetrics.from_config(self.config)
        return self

    def compression(self, variant: Optional[str] = None) -> Compression:
        if self.config is None:
            self.init()
        return Compression(variant, config=self.config, logger=self.logger, metrics=self.metrics)

    def constants(self) -> Constants:
        return constants
