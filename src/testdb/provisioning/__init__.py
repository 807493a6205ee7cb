"""Resolution and provisioning engine.

Modules
-------
config_store    dsn / driver_dsn configuration blocks
mapping_store   locked working-directory → database mapping
provisioner     stable, race-tolerant database naming and creation
resolver        request ↔ source matching with version ranges
handles         handle assembly
context         per-invocation ProvisioningContext
"""

from .config_store import ConfigStore
from .context import ManagedDriver, ProvisioningContext, load_context
from .handles import HandleFactory
from .mapping_store import MappingEntry, MappingStore
from .provisioner import NameScheme, Provisioner
from .resolver import resolve

__all__ = [
    "ConfigStore",
    "MappingEntry",
    "MappingStore",
    "NameScheme",
    "Provisioner",
    "HandleFactory",
    "resolve",
    "ManagedDriver",
    "ProvisioningContext",
    "load_context",
]
