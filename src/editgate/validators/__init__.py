"""
editgate — validators

File: src/editgate/validators/__init__.py
Last updated: 2026-10-19

Purpose
- Stateless policy units grouped into six ordered stages: scope, quality,
  integrity, compliance, specialist, accuracy.

What should be included in this file
- Public validator contracts and every built-in validator class.

Functional requirements
- Importing this package registers all built-ins in ``DEFAULT_VALIDATOR_REGISTRY``
  in stage order, then declaration order within each stage.
"""

from editgate.validators.base import (
    DEFAULT_VALIDATOR_REGISTRY,
    STAGE_ORDER,
    BaseValidator,
    Severity,
    ValidationIssue,
    ValidationResult,
    ValidatorCategory,
    ValidatorFactory,
    ValidatorRegistration,
    ValidatorRegistry,
    ValidatorStage,
    register_builtin_validator,
)
from editgate.validators.scope import (
    ChangeSizeMonitorValidator,
    HallucinationDetectorValidator,
    ScopeGuardValidator,
)
from editgate.validators.quality import (
    BestPracticesValidator,
    SecurityScannerValidator,
    SyntaxValidator,
)
from editgate.validators.integrity import (
    ImportExportValidator,
    TestPreservationValidator,
    TypeIntegrityValidator,
)
from editgate.validators.compliance import (
    BreakingChangeValidator,
    PlanComplianceValidator,
    RollbackCheckpointValidator,
    SnapshotDiffValidator,
)
from editgate.validators.specialist import (
    ApiContractValidator,
    AuthFlowValidator,
    CloudConfigValidator,
    DockerBestPracticesValidator,
    EnvironmentConsistencyValidator,
    EventLeakDetectorValidator,
    HookRulesCheckerValidator,
    SecretsExposureCheckerValidator,
)
from editgate.validators.accuracy import (
    ApiExistenceValidator,
    ComplexityAnalyzerValidator,
    DependencyVerifierValidator,
    DeprecationDetectorValidator,
    DocSyncValidator,
    EdgeCaseCheckerValidator,
    RefactorCompletenessValidator,
    StyleMatcherValidator,
)
from editgate.validators.payloads import (
    AnyPayload,
    ApiExistencePayload,
    BestPracticesPayload,
    ChangeSizePayload,
    CheckpointPayload,
    HallucinationPayload,
    ScopeGuardPayload,
    SecurityPayload,
    StylePayload,
    SyntaxPayload,
    ValidatorPayload,
)

__all__ = [
    "DEFAULT_VALIDATOR_REGISTRY",
    "STAGE_ORDER",
    "AnyPayload",
    "ApiContractValidator",
    "ApiExistencePayload",
    "ApiExistenceValidator",
    "AuthFlowValidator",
    "BaseValidator",
    "BestPracticesPayload",
    "BestPracticesValidator",
    "BreakingChangeValidator",
    "ChangeSizeMonitorValidator",
    "ChangeSizePayload",
    "CheckpointPayload",
    "CloudConfigValidator",
    "ComplexityAnalyzerValidator",
    "DependencyVerifierValidator",
    "DeprecationDetectorValidator",
    "DocSyncValidator",
    "DockerBestPracticesValidator",
    "EdgeCaseCheckerValidator",
    "EnvironmentConsistencyValidator",
    "EventLeakDetectorValidator",
    "HallucinationDetectorValidator",
    "HallucinationPayload",
    "HookRulesCheckerValidator",
    "ImportExportValidator",
    "PlanComplianceValidator",
    "RefactorCompletenessValidator",
    "RollbackCheckpointValidator",
    "ScopeGuardPayload",
    "ScopeGuardValidator",
    "SecretsExposureCheckerValidator",
    "SecurityPayload",
    "SecurityScannerValidator",
    "Severity",
    "SnapshotDiffValidator",
    "StyleMatcherValidator",
    "StylePayload",
    "SyntaxPayload",
    "SyntaxValidator",
    "TestPreservationValidator",
    "TypeIntegrityValidator",
    "ValidationIssue",
    "ValidationResult",
    "ValidatorCategory",
    "ValidatorFactory",
    "ValidatorPayload",
    "ValidatorRegistration",
    "ValidatorRegistry",
    "ValidatorStage",
    "register_builtin_validator",
]
