from components.network import Network
from components.encryption import Encryption
from components.storage import Storage
from components.streaming import Streaming
from components.identity import Identity
from components.warehouse import Warehouse
from components.alerting import Alerting

__all__ = ["Network", "Encryption", "Identity", "Storage", "Streaming", "Warehouse", "Alerting"]
