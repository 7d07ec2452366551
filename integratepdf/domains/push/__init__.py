"""
Push Domain - Delivering extracted fields to configured destinations.

This domain handles:
- Destination type catalogue and required config
- Push orchestration (credentials, adapter, retries, history)
- Per-destination serialisation of pushes
"""

from .catalog import (
    DESTINATION_TYPES,
    get_available_destination_types,
    get_destination_type,
    missing_required_fields,
)
from .contracts import DestinationAdapter
from .models import (
    ConfigField,
    ConfigFieldType,
    Destination,
    DestinationType,
    DestinationTypeInfo,
    PushOutcome,
    PushResult,
)
from .orchestrator import AdapterFactory, PushOrchestrator

__all__ = [
    # Models
    "Destination",
    "DestinationType",
    "DestinationTypeInfo",
    "ConfigField",
    "ConfigFieldType",
    "PushOutcome",
    "PushResult",
    # Contracts
    "DestinationAdapter",
    # Catalogue
    "DESTINATION_TYPES",
    "get_destination_type",
    "get_available_destination_types",
    "missing_required_fields",
    # Orchestration
    "PushOrchestrator",
    "AdapterFactory",
]
