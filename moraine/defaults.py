"""
Default values and configuration keys used by the moraine stages.

Configuration keys follow the Pulumi ``namespace:key`` convention so a
stack file written for ``pulumi up`` works unchanged with ``moraine run``.
"""

DEFAULT_REGION = "europe-west1"
"""Region used when ``gcp:region`` is not configured"""

# Configuration keys
REGION_KEY = "gcp:region"
PROJECT_KEY = "gcp:project"
CLUSTER_MODE_KEY = "moraine:clusterMode"
DATABASE_TIER_KEY = "moraine:databaseTier"
DATABASE_VERSION_KEY = "moraine:databaseVersion"
IMAGE_KEY = "moraine:image"
BUILD_IMAGE_KEY = "moraine:buildImage"
KUBECONFIG_KEY = "moraine:kubeconfig"
README_KEY = "moraine:readme"

# Fallbacks for the keys above
DEFAULT_CLUSTER_MODE = "autopilot"
DEFAULT_DATABASE_TIER = "db-f1-micro"
DEFAULT_DATABASE_VERSION = "POSTGRES_16"
DEFAULT_IMAGE = "gcr.io/google-samples/hello-app:1.0"
DEFAULT_README = "Pulumi.README.md"
DEFAULT_PROJECT_NAME = "moraine"

# Logical resource names
BUCKET_NAME = "moraine-bucket"
REPOSITORY_NAME = "microservice-repo"
IMAGE_NAME = "microservice-image"
AUTOPILOT_CLUSTER_NAME = "moraine-auto-cluster"
REGIONAL_CLUSTER_NAME = "moraine-regional-cluster"
DATABASE_NAME = "microservice-db"
KUBERNETES_PROVIDER_NAME = "gke-provider"
NAMESPACE_NAME = "microservice-ns"
DEPLOYMENT_NAME = "microservice"
SERVICE_NAME = "microservice-svc"

APP_LABELS = {"app": "microservice"}
CONTAINER_PORT = 8080
SERVICE_PORT = 80
