from ..store import FactoryStore
from .checkpoints import CheckpointRegistry
from .lifecycle import BundleLifecycleEngine, FoundBundle
from .master_data import MasterDataCatalog
from .qc import QcInspection
from .qr_codes import QrCodeRegistry
from .users import UserDirectory
from .work_orders import WorkOrderDirectory


class FactoryServices:
    """Every service for one factory, sharing one store."""

    def __init__(self, store: FactoryStore, qr_prefix: str = "BNDL", qr_max_batch: int = 500,
                 qr_max_copies: int = 100):
        self.store = store
        self.work_orders = WorkOrderDirectory(store)
        self.qr_codes = QrCodeRegistry(
            store, self.work_orders, prefix=qr_prefix, max_batch=qr_max_batch, max_copies=qr_max_copies
        )
        self.checkpoints = CheckpointRegistry(store)
        self.lifecycle = BundleLifecycleEngine(store, self.qr_codes, self.checkpoints, self.work_orders)
        self.qc = QcInspection(store, self.qr_codes, self.work_orders)
        self.master_data = MasterDataCatalog(store)
        self.users = UserDirectory(store)

    @property
    def factory_id(self) -> str:
        return self.store.factory_id


def build_services(session, factory_id: str, config=None) -> FactoryServices:
    config = config or {}
    return FactoryServices(
        FactoryStore(session, factory_id),
        qr_prefix=config.get("QR_CODE_PREFIX", "BNDL"),
        qr_max_batch=config.get("QR_MAX_BATCH", 500),
        qr_max_copies=config.get("QR_MAX_COPIES", 100),
    )


__all__ = [
    "FactoryServices",
    "build_services",
    "FoundBundle",
    "CheckpointRegistry",
    "BundleLifecycleEngine",
    "MasterDataCatalog",
    "QcInspection",
    "QrCodeRegistry",
    "UserDirectory",
    "WorkOrderDirectory",
]
