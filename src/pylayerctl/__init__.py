"""pylayerctl - Layer classification and state reconciliation for live maps."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pylayerctl")
except PackageNotFoundError:
    __version__ = "0+local"
from pylayerctl._constants import BACKGROUND_ID, opacity_paint_properties
from pylayerctl.classifier import Classification, ClassificationContext, LayerClassifier
from pylayerctl.config import LayerControlConfig
from pylayerctl.control import LayerControl
from pylayerctl.exceptions import (
    AdapterError,
    BasemapFetchError,
    HostReadError,
    LayerControlConfigError,
    LayerControlError,
)
from pylayerctl.host import HostMap
from pylayerctl.models import (
    BasemapStyle,
    CustomLayerState,
    LayerEntry,
    LayerGroup,
    LayerKind,
    SourceDescriptor,
    SourceType,
)
from pylayerctl.mutation import DeliveryPath
from pylayerctl.reconcile import ReconcilerState
from pylayerctl.registry import AdapterRegistration, CustomLayerAdapter, CustomLayerRegistry
from pylayerctl.state.events import AdapterEvent, HostEvent, ReconcileResult
from pylayerctl.state.store import StateStore

__all__ = [
    "__version__",
    "AdapterError",
    "AdapterEvent",
    "AdapterRegistration",
    "BACKGROUND_ID",
    "BasemapFetchError",
    "BasemapStyle",
    "Classification",
    "ClassificationContext",
    "CustomLayerAdapter",
    "CustomLayerRegistry",
    "CustomLayerState",
    "DeliveryPath",
    "HostEvent",
    "HostMap",
    "HostReadError",
    "LayerClassifier",
    "LayerControl",
    "LayerControlConfig",
    "LayerControlConfigError",
    "LayerControlError",
    "LayerEntry",
    "LayerGroup",
    "LayerKind",
    "ReconcileResult",
    "ReconcilerState",
    "SourceDescriptor",
    "SourceType",
    "StateStore",
    "opacity_paint_properties",
]
