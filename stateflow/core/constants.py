"""Core constants: persisted field names and shared literal values.

Single source of truth for the flow document layout. The repository,
the query options engine and the in-memory store all use these names.
"""

from stateflow.domain.enums import FlowStatus

DEFAULT_FLOW_COLLECTION = "flows"
DEFAULT_STORE_PAGE_SIZE = 100

# Top-level document fields
FIELD_ID = "id"
FIELD_TENANT_ID = "tenantId"
FIELD_ENV_TAG = "envTag"
FIELD_FLOW_NAME = "flowName"
FIELD_REF_ID = "refId"
FIELD_FLOW_STATUS = "flowStatus"
FIELD_FLOW_TAGS = "flowTags"
FIELD_FLOW_TAG_INDEX = "flowTagIndex"
FIELD_CREATED = "created"
FIELD_CHANGED = "changed"
FIELD_CONTEXT = "context"

# Embedded context fields (dotted paths from the document root)
FIELD_CONTEXT_MODEL = "context.model"
FIELD_IS_WAIT_TASK = "context.executionResult.isWaitTask"

# Discriminator key inside the model payload
MODEL_TYPE_KEY = "$type"

# Statuses listed by model/context queries when the caller does not choose
DEFAULT_QUERY_STATUSES = frozenset(
    {FlowStatus.CREATED, FlowStatus.STARTED, FlowStatus.WAITING, FlowStatus.FAILED}
)

# Statuses never reported as active or waiting
INACTIVE_STATUSES = (FlowStatus.DELETED, FlowStatus.FINISHED)
