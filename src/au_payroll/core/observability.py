from typing import Optional

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .config import settings

tracer = trace.get_tracer("au_payroll")
meter = metrics.get_meter("au_payroll")

employees_processed = meter.create_counter(
    "payroll.employees_processed",
    unit="1",
    description="Employee calculations attempted by payroll runs",
)
run_duration = meter.create_histogram(
    "payroll.run.duration",
    unit="s",
    description="Wall time of a payroll run from snapshot to sink",
)
amount_paid = meter.create_counter(
    "payroll.amount",
    unit="AUD",
    description="Gross and net pay calculated by completed runs",
)


def record_run(status: str, seconds: float, gross_pay: float, net_pay: float) -> None:
    run_duration.record(seconds, {"status": status})
    amount_paid.add(gross_pay, {"kind": "gross"})
    amount_paid.add(net_pay, {"kind": "net"})


def configure_observability(otlp_endpoint: Optional[str] = None, service_name: str = "au-payroll") -> None:
    """Install SDK tracer and meter providers.

    Without an OTLP endpoint the providers are still installed so spans and
    instruments are live, they just have nowhere to export to.
    """
    endpoint = otlp_endpoint or settings.otlp_endpoint
    resource = Resource.create({"service.name": service_name, "deployment.env": settings.env})

    tracer_provider = TracerProvider(resource=resource)
    readers = []
    if endpoint:
        tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{endpoint}/v1/traces")))
        readers.append(PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=f"{endpoint}/v1/metrics")))
    trace.set_tracer_provider(tracer_provider)
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=readers))
