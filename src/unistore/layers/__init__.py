"""Built-in layers.

Apply them with :meth:`unistore.Operator.layer` or pass them to the
:class:`~unistore.Operator` constructor; the last layer given ends up
outermost.
"""

from unistore.layers._complete import CompleteLayer
from unistore.layers._concurrent_limit import ConcurrentLimitLayer
from unistore.layers._error_context import ErrorContextLayer
from unistore.layers._logging import LoggingLayer
from unistore.layers._metrics import MetricsLayer
from unistore.layers._retry import RetryLayer
from unistore.layers._throttle import ThrottleLayer, TokenBucket
from unistore.layers._tracing import TracingLayer

__all__ = [
    "CompleteLayer",
    "ConcurrentLimitLayer",
    "ErrorContextLayer",
    "LoggingLayer",
    "MetricsLayer",
    "RetryLayer",
    "ThrottleLayer",
    "TokenBucket",
    "TracingLayer",
]
