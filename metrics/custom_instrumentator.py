from prometheus_fastapi_instrumentator import Instrumentator, metrics

METRICS_ENDPOINT = "/metrics"


def build_instrumentator() -> Instrumentator:
    instrumentator = Instrumentator(
        should_ignore_untemplated=True,      # /products/abc -> /products/{slug}
        excluded_handlers=[METRICS_ENDPOINT, "/api/v1/health"],
        should_instrument_requests_inprogress=True,
        should_group_status_codes=False,
    )
    instrumentator.add(metrics.default(metric_namespace="bazaar"))
    return instrumentator
