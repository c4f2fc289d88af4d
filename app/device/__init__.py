from .exceptions import (
    FieldAppError, ValidationError, NotFound, Unauthenticated, Offline,
    TransportFailure, ServerFault, SyncInProgress, PartialBatchFailure,
)
from .storage import LocalStorage, PendingStore, UploadedHistory
from .connectivity import ConnectivityGate, HttpConnectivityGate
from .api_client import ApiClient
from .records import generate_health_id, new_child_record
from .session import AuthSession, SessionManager
from .sync import BatchResult, SyncEngine, reconcile
from .runtime import FieldApp, create_field_app
