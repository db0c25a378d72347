"""Constants used across the operator."""

# Labels and annotations written onto namespaces
PROJECT_ID_LABEL = "field.cattle.io/projectId"
CLUSTER_ID_LABEL = "field.cattle.io/clusterId"
PROJECT_ID_ANNOTATION = "field.cattle.io/projectId"

# Written onto Projects created by the operator
PROJECT_NAME_LABEL = "field.cattle.io/projectName"

# Default label carrying the wanted project name
DEFAULT_OWNER_LABEL = "appOwner"

# Rancher management API, only served by the management cluster
MANAGEMENT_GROUP = "management.cattle.io"
MANAGEMENT_VERSION = "v3"
PROJECT_PLURAL = "projects"
CLUSTER_PLURAL = "clusters"

# Management cluster id; it already has a built-in client
DEFAULT_LOCAL_CLUSTER_ID = "local"

# Path prefix the management server uses to proxy member cluster APIs
CLUSTER_PROXY_PREFIX = "/k8s/clusters/"

# Prefix for kopf bookkeeping annotations
OPERATOR_PREFIX = "namespace-project-operator.cattle.io"

# Maximum length of a generated project id
MAX_PROJECT_ID_LENGTH = 63
