"""Project-wide constants for chart-backed operator resources."""

# Relative directory within an operator project where Helm charts are stored.
HELM_CHARTS_DIR = "helm-charts"

# CRD API group used for fetched charts when no group is given.
DEFAULT_GROUP = "charts"

# CRD API version used for fetched charts when no version is given.
DEFAULT_VERSION = "v1alpha1"

DEFAULT_CRD_VERSION = "v1"

CHART_FILE = "Chart.yaml"
VALUES_FILE = "values.yaml"
SCHEMA_FILE = "values.schema.json"
LOCK_FILE = "Chart.lock"
REQUIREMENTS_FILE = "requirements.yaml"
REQUIREMENTS_LOCK_FILE = "requirements.lock"
TEMPLATES_DIR = "templates"
CHARTS_DIR = "charts"

# Legacy apiVersion; dependencies live in requirements.yaml
API_VERSION_V1 = "v1"
