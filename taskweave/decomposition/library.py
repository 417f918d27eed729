"""Built-in method library and pattern catalogue.

The library is written in the same document shape ``load_registry`` reads
from YAML, so a project can start from a dump of it and customise.

Capability ids produced by the primitive tasks follow the
``"<category>.<option>"`` convention used by
``ProjectDefinition.mandatory_components``.
"""

from typing import Any

from taskweave.decomposition.loader import patterns_from_dict, registry_from_dict
from taskweave.decomposition.models import Pattern
from taskweave.decomposition.registry import MethodRegistry


def _compound(name: str, category: str = "business_logic", **extra: Any) -> dict[str, Any]:
    return {"name": name, "kind": "compound", "category": category, **extra}


def _primitive(
    name: str,
    category: str,
    preconditions: list[str],
    effects: list[str],
    tags: list[str],
    description: str,
    **extra: Any,
) -> dict[str, Any]:
    return {
        "name": name,
        "kind": "primitive",
        "category": category,
        "preconditions": preconditions,
        "effects": effects,
        "capability_tags": tags,
        "description": description,
        **extra,
    }


def _requires(category: str, option: str) -> dict[str, Any]:
    return {"requires": {"capabilities": {category: [option]}}}


def _requires_selection(category: str) -> dict[str, Any]:
    return {"requires": {"capabilities": {category: []}}}


# =============================================================================
# TEMPLATES
# =============================================================================

TEMPLATES: list[dict[str, Any]] = [
    # Roots
    _compound("BuildWebApplication"),
    _compound("BuildMobileApplication"),
    _compound("BuildDataPipeline"),
    _compound("BuildSoftwareSystem"),
    _compound("EstablishEventInfrastructure", "infrastructure"),
    _compound("EstablishServicePlatform", "infrastructure"),
    # Structural
    _compound("ImplementBackend"),
    _compound("ImplementStorage", "data_model", **_requires_selection("storage")),
    _compound("ImplementCommunication", "api", **_requires_selection("communication")),
    _compound("ImplementSecurity", "security"),
    _compound("ImplementFrontend", "ui"),
    _compound("ImplementDataFlow", "data_model"),
    _compound(
        "ImplementObservability", "infrastructure", **_requires_selection("observability")
    ),
    _compound("DeployApplication", "deployment"),
    # Setup
    _primitive(
        "SetupEnvironment", "setup", [], ["environment_ready"], ["tooling"],
        "Create repository layout, dependency manifest and local tooling",
    ),
    _primitive(
        "ConfigureContinuousIntegration", "setup", ["environment_ready"], ["ci_pipeline"],
        ["ci"],
        "Run lint, type checks and tests on every change",
    ),
    # Domain
    _primitive(
        "DefineDomainModel", "data_model", ["environment_ready"], ["domain_model"],
        ["domain"],
        "Define entities, value objects and their relationships",
    ),
    _primitive(
        "ImplementBusinessLogic", "business_logic", ["domain_model"], ["business_logic"],
        ["business_logic"],
        "Implement service layer operations and validation rules",
    ),
    # Storage
    _primitive(
        "CreateRelationalSchema", "data_model", ["domain_model"],
        ["storage.relational", "has_database"], ["storage", "database"],
        "Create tables, constraints and migrations",
        **_requires("storage", "relational"),
    ),
    _primitive(
        "CreateDocumentCollections", "data_model", ["domain_model"],
        ["storage.document", "has_database"], ["storage", "database"],
        "Create document collections and indexes",
        **_requires("storage", "document"),
    ),
    _primitive(
        "ConfigureKeyValueStore", "infrastructure", ["environment_ready"],
        ["storage.key_value", "has_cache_store"], ["storage", "cache"],
        "Provision the key-value store and client configuration",
        **_requires("storage", "key_value"),
    ),
    _primitive(
        "ConfigureFileStorage", "infrastructure", ["environment_ready"],
        ["storage.file"], ["storage", "files"],
        "Configure file or object storage buckets and access",
        **_requires("storage", "file"),
    ),
    # Communication
    _primitive(
        "CreateRestApi", "api", ["business_logic"],
        ["communication.http_rest", "has_api"], ["api", "http"],
        "Expose business operations as REST endpoints",
        **_requires("communication", "http_rest"),
    ),
    _primitive(
        "CreateGraphqlApi", "api", ["business_logic"],
        ["communication.graphql", "has_api"], ["api", "http"],
        "Define the GraphQL schema and resolvers",
        **_requires("communication", "graphql"),
    ),
    _primitive(
        "CreateGrpcServices", "api", ["business_logic"],
        ["communication.grpc", "has_api"], ["api", "rpc"],
        "Define protobuf contracts and implement gRPC services",
        **_requires("communication", "grpc"),
    ),
    _primitive(
        "ImplementWebsocketChannel", "api", ["business_logic"],
        ["communication.websocket"], ["api", "realtime"],
        "Push real-time updates over WebSocket connections",
        **_requires("communication", "websocket"),
    ),
    _primitive(
        "SetupMessageBroker", "integration", ["environment_ready"],
        ["communication.message_queue", "has_messaging"], ["messaging"],
        "Provision queues and topics and wire producers and consumers",
        **_requires("communication", "message_queue"),
    ),
    # Security
    _primitive(
        "ImplementPasswordAuth", "security", ["domain_model"],
        ["authentication.password", "has_auth"], ["security", "auth"],
        "Registration, login and password hashing",
        **_requires("authentication", "password"),
    ),
    _primitive(
        "ImplementOAuthLogin", "security", ["domain_model"],
        ["authentication.oauth", "has_auth"], ["security", "auth"],
        "Delegate login to external OAuth providers",
        **_requires("authentication", "oauth"),
    ),
    _primitive(
        "ImplementTokenAuth", "security", ["domain_model"],
        ["authentication.jwt", "has_auth"], ["security", "auth"],
        "Issue and verify signed access tokens",
        **_requires("authentication", "jwt"),
    ),
    _primitive(
        "ApplySecurityHardening", "security", ["business_logic"],
        ["security_hardening"], ["security"],
        "Input validation, security headers and dependency audit",
    ),
    # Frontend
    _primitive(
        "BuildUserInterface", "ui", ["business_logic"], ["user_interface"], ["ui"],
        "Build pages, navigation and forms against the backend",
    ),
    _primitive(
        "BuildMobileScreens", "ui", ["business_logic"],
        ["user_interface", "mobile_client"], ["ui", "mobile"],
        "Build native screens and navigation",
    ),
    _primitive(
        "PublishToAppStores", "deployment", ["mobile_client", "test_suite"],
        ["app_store_release"], ["mobile", "deployment"],
        "Sign builds and submit them to the app stores",
    ),
    _primitive(
        "BuildDesktopShell", "ui", ["business_logic"], ["user_interface"], ["ui", "desktop"],
        "Build windows, menus and packaging for the desktop shell",
    ),
    _primitive(
        "BuildCommandInterface", "ui", ["business_logic"], ["command_interface"],
        ["ui", "cli"],
        "Commands, options and help output for the command line",
        requires={"interface_paradigms": ["cli"]},
    ),
    _primitive(
        "PublishPublicApi", "documentation", ["business_logic"], ["public_api"], ["api"],
        "Stabilise and document the public programming interface",
        requires={"interface_paradigms": ["sdk"]},
    ),
    _primitive(
        "ExposeEntryPoint", "ui", ["business_logic"], ["entry_point"], ["interface"],
        "Expose the core operations through the application entry point",
    ),
    # Data
    _primitive(
        "DefineDataSchemas", "data_model", ["environment_ready"],
        ["domain_model", "data_schemas"], ["domain", "data"],
        "Define source and target schemas with validation rules",
    ),
    _primitive(
        "BuildIngestionJobs", "integration", ["data_schemas"], ["data_ingestion"],
        ["data", "ingestion"],
        "Extract and load data from the configured sources",
    ),
    _primitive(
        "BuildTransformations", "business_logic", ["data_ingestion"],
        ["business_logic", "data_transformations"], ["data", "business_logic"],
        "Clean, join and aggregate ingested data",
    ),
    _primitive(
        "TrainModel", "business_logic", ["data_transformations"], ["trained_model"],
        ["ml"],
        "Train the model on prepared features",
    ),
    _primitive(
        "EvaluateModel", "testing", ["trained_model"], ["model_evaluation"], ["ml", "testing"],
        "Evaluate the trained model against held-out data",
    ),
    # Architecture specific
    _primitive(
        "DefineServiceBoundaries", "business_logic", ["domain_model"],
        ["service_boundaries"], ["architecture"],
        "Split the domain into independently deployable services",
        architecture_tags=["microservices"],
    ),
    _primitive(
        "ConfigureServiceDiscovery", "infrastructure", ["service_boundaries"],
        ["service_discovery"], ["networking"],
        "Register services and resolve peers at runtime",
        architecture_tags=["microservices"],
    ),
    _primitive(
        "ConfigureApiGateway", "infrastructure", ["has_api", "service_discovery"],
        ["api_gateway"], ["networking", "api"],
        "Route external traffic to services through a gateway",
        architecture_tags=["microservices"],
    ),
    _primitive(
        "ProvisionEventBus", "infrastructure", ["environment_ready"], ["event_bus"],
        ["messaging"],
        "Provision the event bus shared by producers and consumers",
        architecture_tags=["event_driven"],
    ),
    _primitive(
        "DefineEventSchemas", "data_model", ["domain_model", "event_bus"],
        ["event_schemas"], ["messaging"],
        "Define versioned schemas for published domain events",
        architecture_tags=["event_driven"],
    ),
    # Observability
    _primitive(
        "ConfigureStructuredLogging", "infrastructure", ["environment_ready"],
        ["observability.logging"], ["observability"],
        "Emit structured logs with request context",
        **_requires("observability", "logging"),
    ),
    _primitive(
        "ConfigureMetricsCollection", "infrastructure", ["environment_ready"],
        ["observability.metrics"], ["observability"],
        "Expose and scrape application metrics",
        **_requires("observability", "metrics"),
    ),
    _primitive(
        "ConfigureTracing", "infrastructure", ["environment_ready"],
        ["observability.tracing"], ["observability"],
        "Propagate trace context and export spans",
        **_requires("observability", "tracing"),
    ),
    # Quality
    _primitive(
        "WriteTests", "testing", ["business_logic"], ["test_suite"], ["testing"],
        "Unit and integration tests for the implemented behaviour",
    ),
    _primitive(
        "WriteDocumentation", "documentation", ["business_logic"], ["documentation"],
        ["documentation"],
        "Usage guide and API reference",
    ),
    # Deployment
    _primitive(
        "BuildReleaseArtifact", "deployment", ["test_suite"], ["deployable_artifact"],
        ["deployment"],
        "Build a versioned release artifact",
    ),
    _primitive(
        "ContainerizeApplication", "deployment", ["test_suite"],
        ["deployable_artifact", "deployment.container"], ["deployment", "container"],
        "Write container images and compose files",
    ),
    _primitive(
        "PackageFunctions", "deployment", ["test_suite"],
        ["deployable_artifact", "deployment.serverless"], ["deployment", "serverless"],
        "Package handlers as serverless functions",
    ),
    _primitive(
        "ProvisionInfrastructure", "infrastructure", ["environment_ready"],
        ["infrastructure"], ["infrastructure"],
        "Provision runtime infrastructure as code",
    ),
    _primitive(
        "ReleaseToProduction", "deployment",
        ["deployable_artifact", "infrastructure", "ci_pipeline"], ["released"],
        ["deployment"],
        "Deploy the artifact and run smoke checks",
    ),
]


# =============================================================================
# METHODS
# =============================================================================

_BACKEND_SUBTASKS = [
    "DefineDomainModel",
    "ImplementStorage",
    "ImplementBusinessLogic",
    "ImplementCommunication",
    "ImplementSecurity",
]

_QUALITY_AND_DELIVERY = [
    "ImplementObservability",
    "WriteTests",
    "WriteDocumentation",
    "DeployApplication",
]

METHODS: list[dict[str, Any]] = [
    {
        "name": "web_application",
        "task_type": "BuildWebApplication",
        "subtasks": [
            "SetupEnvironment", "ConfigureContinuousIntegration",
            "ImplementBackend", "ImplementFrontend", *_QUALITY_AND_DELIVERY,
        ],
    },
    {
        "name": "mobile_application",
        "task_type": "BuildMobileApplication",
        "subtasks": [
            "SetupEnvironment", "ConfigureContinuousIntegration",
            "ImplementBackend", "ImplementFrontend", *_QUALITY_AND_DELIVERY,
        ],
    },
    {
        "name": "data_pipeline",
        "task_type": "BuildDataPipeline",
        "subtasks": [
            "SetupEnvironment", "ConfigureContinuousIntegration",
            "ImplementDataFlow", "ImplementStorage", *_QUALITY_AND_DELIVERY,
        ],
    },
    {
        "name": "software_system",
        "task_type": "BuildSoftwareSystem",
        "subtasks": [
            "SetupEnvironment", "ConfigureContinuousIntegration",
            "ImplementBackend", "ImplementFrontend", *_QUALITY_AND_DELIVERY,
        ],
    },
    {
        "name": "event_infrastructure",
        "task_type": "EstablishEventInfrastructure",
        "subtasks": ["ProvisionEventBus", "DefineEventSchemas"],
    },
    {
        "name": "service_platform",
        "task_type": "EstablishServicePlatform",
        "subtasks": ["ConfigureServiceDiscovery", "ConfigureApiGateway"],
    },
    {
        "name": "microservices_backend",
        "task_type": "ImplementBackend",
        "subtasks": [
            "DefineDomainModel", "DefineServiceBoundaries", *_BACKEND_SUBTASKS[1:],
        ],
        "condition": {"architectural_styles": ["microservices"]},
    },
    {
        "name": "backend",
        "task_type": "ImplementBackend",
        "subtasks": list(_BACKEND_SUBTASKS),
    },
    {
        "name": "storage",
        "task_type": "ImplementStorage",
        "subtasks": [
            "CreateRelationalSchema", "CreateDocumentCollections",
            "ConfigureKeyValueStore", "ConfigureFileStorage",
        ],
    },
    {
        "name": "communication",
        "task_type": "ImplementCommunication",
        "subtasks": [
            "CreateRestApi", "CreateGraphqlApi", "CreateGrpcServices",
            "ImplementWebsocketChannel", "SetupMessageBroker",
        ],
    },
    {
        "name": "security",
        "task_type": "ImplementSecurity",
        "subtasks": [
            "ImplementPasswordAuth", "ImplementOAuthLogin", "ImplementTokenAuth",
            "ApplySecurityHardening",
        ],
    },
    {
        "name": "web_frontend",
        "task_type": "ImplementFrontend",
        "subtasks": ["BuildUserInterface"],
        "condition": {"domains": ["web"]},
    },
    {
        "name": "mobile_frontend",
        "task_type": "ImplementFrontend",
        "subtasks": ["BuildMobileScreens", "PublishToAppStores"],
        "condition": {"domains": ["mobile"]},
    },
    {
        "name": "desktop_frontend",
        "task_type": "ImplementFrontend",
        "subtasks": ["BuildDesktopShell"],
        "condition": {"domains": ["desktop"]},
    },
    {
        "name": "interface",
        "task_type": "ImplementFrontend",
        "subtasks": ["BuildCommandInterface", "PublishPublicApi"],
        "condition": {"interface_paradigms": ["cli", "sdk"]},
    },
    {
        "name": "entry_point",
        "task_type": "ImplementFrontend",
        "subtasks": ["ExposeEntryPoint"],
    },
    {
        "name": "ml_data_flow",
        "task_type": "ImplementDataFlow",
        "subtasks": [
            "DefineDataSchemas", "BuildIngestionJobs", "BuildTransformations",
            "TrainModel", "EvaluateModel",
        ],
        "condition": {"domains": ["machine_learning"]},
    },
    {
        "name": "data_flow",
        "task_type": "ImplementDataFlow",
        "subtasks": ["DefineDataSchemas", "BuildIngestionJobs", "BuildTransformations"],
    },
    {
        "name": "observability",
        "task_type": "ImplementObservability",
        "subtasks": [
            "ConfigureStructuredLogging", "ConfigureMetricsCollection", "ConfigureTracing",
        ],
    },
    {
        "name": "serverless_deployment",
        "task_type": "DeployApplication",
        "subtasks": ["PackageFunctions", "ProvisionInfrastructure", "ReleaseToProduction"],
        "condition": {"architectural_styles": ["serverless"]},
    },
    {
        "name": "container_deployment",
        "task_type": "DeployApplication",
        "subtasks": ["ContainerizeApplication", "ProvisionInfrastructure", "ReleaseToProduction"],
        "condition": {"capabilities": {"deployment": ["container"]}},
    },
    {
        "name": "deployment",
        "task_type": "DeployApplication",
        "subtasks": ["BuildReleaseArtifact", "ProvisionInfrastructure", "ReleaseToProduction"],
    },
]

ROOTS: list[dict[str, Any]] = [
    {"task_type": "BuildWebApplication", "condition": {"domains": ["web"]}},
    {"task_type": "BuildMobileApplication", "condition": {"domains": ["mobile"]}},
    {
        "task_type": "BuildDataPipeline",
        "condition": {"domains": ["data", "machine_learning"]},
    },
    {
        "task_type": "BuildSoftwareSystem",
        "condition": {"domains": ["desktop", "cli", "library", "game", "iot"]},
    },
    {
        "task_type": "EstablishEventInfrastructure",
        "condition": {"architectural_styles": ["event_driven"]},
    },
    {
        "task_type": "EstablishServicePlatform",
        "condition": {"architectural_styles": ["microservices"]},
    },
]


# =============================================================================
# PATTERNS
# =============================================================================

PATTERNS: list[dict[str, Any]] = [
    {
        "name": "caching",
        "condition": {"quality_attributes": {"performance": "high"}},
        "suggestions": ["response_caching", "cache_aside"],
        "target_capabilities": ["api", "database"],
    },
    {
        "name": "connection_pooling",
        "condition": {"capabilities": {"storage": ["relational", "document"]}},
        "suggestions": ["connection_pooling"],
        "target_capabilities": ["database"],
    },
    {
        "name": "resilience",
        "condition": {
            "architectural_styles": ["microservices"],
            "quality_attributes": {"reliability": "high"},
        },
        "suggestions": ["circuit_breaker", "retry_with_backoff"],
        "target_capabilities": ["networking", "api", "rpc"],
    },
    {
        "name": "api_protection",
        "condition": {"quality_attributes": {"security": "high"}},
        "suggestions": ["rate_limiting", "input_validation"],
        "target_capabilities": ["api"],
    },
    {
        "name": "credential_safety",
        "condition": {"quality_attributes": {"security": "high"}},
        "suggestions": ["secret_rotation", "multi_factor_authentication"],
        "target_capabilities": ["auth"],
    },
    {
        "name": "elastic_scaling",
        "condition": {"quality_attributes": {"scalability": "high"}},
        "suggestions": ["horizontal_autoscaling", "stateless_services"],
        "target_capabilities": ["infrastructure", "deployment"],
    },
    {
        "name": "diagnosability",
        "condition": {"quality_attributes": {"maintainability": "medium"}},
        "suggestions": ["structured_logging", "correlation_ids"],
        "target_capabilities": ["observability", "business_logic"],
    },
    {
        "name": "reliable_messaging",
        "condition": {"architectural_styles": ["event_driven"]},
        "suggestions": ["idempotent_consumer", "transactional_outbox"],
        "target_capabilities": ["messaging"],
    },
    {
        "name": "offline_first",
        "condition": {"domains": ["mobile"]},
        "suggestions": ["offline_first_sync"],
        "target_capabilities": ["mobile"],
    },
    {
        "name": "frontend_performance",
        "condition": {"domains": ["web"], "quality_attributes": {"performance": "medium"}},
        "suggestions": ["code_splitting", "lazy_loading"],
        "target_capabilities": ["ui"],
    },
]

DEFAULT_LIBRARY: dict[str, Any] = {
    "templates": TEMPLATES,
    "methods": METHODS,
    "roots": ROOTS,
    "patterns": PATTERNS,
}


def build_default_registry() -> MethodRegistry:
    """Build a fresh registry from the built-in library."""
    return registry_from_dict(DEFAULT_LIBRARY, source="built-in library")


def default_patterns() -> list[Pattern]:
    """Built-in pattern catalogue."""
    return patterns_from_dict(DEFAULT_LIBRARY, source="built-in library")
