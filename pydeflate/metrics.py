"""Prometheus metrics export for pydeflate."""

from prometheus_client import Counter, Gauge, Histogram, start_http_server


# Module-level metrics (singleton pattern to avoid duplicate registration)
_metrics_initialized = False
_operations = None
_failures = None
_bytes_in = None
_bytes_out = None
_open_streams = None
_duration = None


def _init_metrics():
    """Initialize metrics only once."""
    global _metrics_initialized, _operations, _failures, _bytes_in, _bytes_out
    global _open_streams, _duration

    if _metrics_initialized:
        return

    _operations = Counter('pydeflate_operations_total', 'Compression operations started', ['variant', 'mode'])
    _failures = Counter('pydeflate_failures_total', 'Compression operations failed', ['variant', 'mode'])
    _bytes_in = Counter('pydeflate_bytes_in_total', 'Bytes handed to the library', ['variant', 'mode'])
    _bytes_out = Counter('pydeflate_bytes_out_total', 'Bytes produced by the library', ['variant', 'mode'])

    _open_streams = Gauge('pydeflate_open_streams', 'Streams currently open', ['variant'])

    _duration = Histogram('pydeflate_call_duration_seconds', 'Time spent in one library call', ['variant', 'mode'],
                          buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0])

    _metrics_initialized = True


class CompressionMetrics:
    """Prometheus metrics collector."""

    _server_started = False

    def __init__(self, port: int = 9090):
        self.port = port
        _init_metrics()

        self.operations = _operations
        self.failures = _failures
        self.bytes_in = _bytes_in
        self.bytes_out = _bytes_out
        self.open_streams = _open_streams
        self.duration = _duration

    @classmethod
    def from_config(cls, config) -> "CompressionMetrics":
        """Build the collector and start the exporter when monitoring is enabled."""
        metrics = cls(port=config.get("monitoring", "prometheus_port", 9090))
        if config.get("monitoring", "prometheus_enabled", False):
            metrics.start()
        return metrics

    def start(self):
        """Start Prometheus metrics server."""
        if not CompressionMetrics._server_started:
            start_http_server(self.port)
            CompressionMetrics._server_started = True

    def record_operation(self, variant: str, mode: str):
        """Record a one-shot call or an opened stream."""
        self.operations.labels(variant=variant, mode=mode).inc()

    def record_failure(self, variant: str, mode: str):
        """Record a failure reported by the library."""
        self.failures.labels(variant=variant, mode=mode).inc()

    def record_bytes(self, variant: str, mode: str, size_in: int, size_out: int):
        """Record input and output volume of one library call."""
        self.bytes_in.labels(variant=variant, mode=mode).inc(size_in)
        self.bytes_out.labels(variant=variant, mode=mode).inc(size_out)

    def observe_duration(self, variant: str, mode: str, seconds: float):
        """Record the time one library call took."""
        self.duration.labels(variant=variant, mode=mode).observe(seconds)

    def stream_opened(self, variant: str):
        """Record a stream opening."""
        self.record_operation(variant, "stream")
        self.open_streams.labels(variant=variant).inc()

    def stream_closed(self, variant: str):
        """Record a stream reaching its terminal state."""
        self.open_streams.labels(variant=variant).dec()
