from app.models.user import User, UserRole  # noqa: F401
from app.models.access import (  # noqa: F401
    GroupMenuAccess,
    GroupModuleAccess,
    MenuItem,
    PermissionLevel,
    UserGroup,
    UserGroupMember,
    UserPermission,
)
from app.models.records import (  # noqa: F401
    Company,
    FieldType,
    HistoryAction,
    Module,
    ModuleField,
    ModuleRecord,
    PrintQueueItem,
    PrintStatus,
    RecordCompany,
    RecordDocument,
    RecordHistory,
    RecordImage,
    RecordLink,
    RecordView,
    WarningMode,
)
from app.models.webhook import (  # noqa: F401
    WebhookDelivery,
    WebhookDeliveryStatus,
    WebhookEndpoint,
)
