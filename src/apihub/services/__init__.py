"""Services for the endpoint test engine and analytics."""

from apihub.services.analytics import AnalyticsReader
from apihub.services.dispatcher import (
    AccessDecision,
    AccessPolicy,
    DenialReason,
    EndpointDispatcher,
    TestResult,
    authorize_test_call,
)
from apihub.services.request_builder import (
    OutboundRequest,
    ParameterBundle,
    build_outbound_request,
)
from apihub.services.stats import StatsAggregator

__all__ = [
    "AccessDecision",
    "AccessPolicy",
    "AnalyticsReader",
    "DenialReason",
    "EndpointDispatcher",
    "OutboundRequest",
    "ParameterBundle",
    "StatsAggregator",
    "TestResult",
    "authorize_test_call",
    "build_outbound_request",
]
