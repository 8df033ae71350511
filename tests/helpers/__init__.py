from .metric_delta import histogram_observes, metric_delta
from .network import PUBLIC_ADDRESS, public_resolver, static_resolver
from .payloads import pagespeed_payload, validator_payload

__all__ = [
    "PUBLIC_ADDRESS",
    "histogram_observes",
    "metric_delta",
    "pagespeed_payload",
    "public_resolver",
    "static_resolver",
    "validator_payload",
]
