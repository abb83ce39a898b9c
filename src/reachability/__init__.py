"""Service node reachability tracking and reporting."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("snode-reachability")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source without pip install)
    __version__ = "0.0.0.dev0"

from reachability.bootstrap import ReachabilityContext, bootstrap
from reachability.config import GRACE_PERIOD, MISSED_PING_LIMIT, Config, load_config
from reachability.ledger import ReachabilityLedger
from reachability.records import ReachabilityRecord
from reachability.reporter import ReachabilityReporter
from reachability.scheduler import RetestScheduler
from reachability.types import Channel, ChannelState, PeerKey, ReportType

# NOTE: Update this list when adding new exports to this module.
__all__ = [
    "__version__",
    "GRACE_PERIOD",
    "MISSED_PING_LIMIT",
    "Channel",
    "ChannelState",
    "Config",
    "PeerKey",
    "ReachabilityLedger",
    "ReachabilityRecord",
    "ReachabilityReporter",
    "ReachabilityContext",
    "ReportType",
    "RetestScheduler",
    "bootstrap",
    "load_config",
]
