"""Push a table of artifact variations and check how the registry reacts."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

import httpx

from imagegen.oci.builder import Builder
from imagegen.oci.descriptor import Descriptor
from imagegen.oci.errors import ImagegenError

SUBJECT_TAG = "oci-subject"
TAG_PREFIX = "genimage"


@dataclass(frozen=True, slots=True)
class ArtifactConstructOptions:
    includes_artifact_type: bool
    config_is_scratch: bool
    layers_are_scratch: bool
    layer_count: int
    has_subject: bool
    subject_in_registry: bool
    error_expected: bool

    def title(self, index: int) -> str:
        subject = "Subject Added" if self.has_subject else "Subject Missing"
        exists = "Subject Exists" if self.subject_in_registry else "Subject Missing"
        artifact_type = (
            "Artifact Type Added"
            if self.includes_artifact_type
            else "Artifact Type Missing"
        )
        config = "Scratch Config" if self.config_is_scratch else "Regular Config"
        layers = "Scratch Layers" if self.layers_are_scratch else "Regular Layers"
        return (
            f"OCI Artifact {index}: {subject} - {exists} - {artifact_type} - "
            f"{config} - {self.layer_count} - {layers}"
        )


DEFAULT_CASES: tuple[ArtifactConstructOptions, ...] = (
    # Basic referrer artifact
    ArtifactConstructOptions(
        includes_artifact_type=True,
        config_is_scratch=True,
        layers_are_scratch=True,
        layer_count=1,
        has_subject=True,
        subject_in_registry=True,
        error_expected=False,
    ),
    # Referrer with real config and layers
    ArtifactConstructOptions(
        includes_artifact_type=True,
        config_is_scratch=False,
        layers_are_scratch=False,
        layer_count=3,
        has_subject=True,
        subject_in_registry=True,
        error_expected=False,
    ),
    # Scratch config without an artifact type
    ArtifactConstructOptions(
        includes_artifact_type=False,
        config_is_scratch=True,
        layers_are_scratch=True,
        layer_count=1,
        has_subject=True,
        subject_in_registry=True,
        error_expected=True,
    ),
    # Scratch config with real layers
    ArtifactConstructOptions(
        includes_artifact_type=True,
        config_is_scratch=True,
        layers_are_scratch=False,
        layer_count=1,
        has_subject=True,
        subject_in_registry=True,
        error_expected=False,
    ),
    # Real config, scratch layers, no artifact type
    ArtifactConstructOptions(
        includes_artifact_type=False,
        config_is_scratch=False,
        layers_are_scratch=True,
        layer_count=1,
        has_subject=True,
        subject_in_registry=True,
        error_expected=False,
    ),
    # All scratch, no subject
    ArtifactConstructOptions(
        includes_artifact_type=True,
        config_is_scratch=True,
        layers_are_scratch=True,
        layer_count=1,
        has_subject=False,
        subject_in_registry=False,
        error_expected=False,
    ),
    # All scratch, no subject, no artifact type
    ArtifactConstructOptions(
        includes_artifact_type=False,
        config_is_scratch=True,
        layers_are_scratch=True,
        layer_count=1,
        has_subject=False,
        subject_in_registry=False,
        error_expected=False,
    ),
    # No layers
    ArtifactConstructOptions(
        includes_artifact_type=True,
        config_is_scratch=True,
        layers_are_scratch=False,
        layer_count=0,
        has_subject=False,
        subject_in_registry=False,
        error_expected=True,
    ),
)


class Outcome(Enum):
    SUCCESS = "success"
    EXPECTED_ERROR = "expected error"
    UNEXPECTED_ERROR = "unexpected error"
    UNEXPECTED_SUCCESS = "unexpected success"

    @property
    def passed(self) -> bool:
        return self in (Outcome.SUCCESS, Outcome.EXPECTED_ERROR)

    @classmethod
    def classify(cls, failed: bool, error_expected: bool) -> "Outcome":
        if failed:
            return cls.EXPECTED_ERROR if error_expected else cls.UNEXPECTED_ERROR
        return cls.UNEXPECTED_SUCCESS if error_expected else cls.SUCCESS


@dataclass(slots=True)
class CaseResult:
    index: int
    case: ArtifactConstructOptions
    title: str
    outcome: Outcome
    error: Exception | None = None


class MatrixRunner:
    """Run every case against one repository, in order.

    A case that does not behave as expected is reported and the run
    carries on with the next case.
    """

    def __init__(
        self,
        builder: Builder,
        cases: tuple[ArtifactConstructOptions, ...] = DEFAULT_CASES,
        logger: logging.Logger = logging.getLogger(__name__),
    ):
        self.builder = builder
        self.cases = cases
        self.logger = logger

    def run(self, repo: str | None = None) -> list[CaseResult]:
        if repo is None:
            repo = self.builder.repository()
        # Failing to push the shared subject ends the run
        subject = self.builder.push_image(repo, SUBJECT_TAG)
        return [
            self.run_case(i, case, repo, subject) for i, case in enumerate(self.cases)
        ]

    def run_case(
        self,
        index: int,
        case: ArtifactConstructOptions,
        repo: str,
        subject: Descriptor,
    ) -> CaseResult:
        error = None
        try:
            self.builder.push_artifact(
                self.builder.subject_for(case, subject),
                repo,
                f"{TAG_PREFIX}-oci-{index}",
                case,
            )
        except (ImagegenError, httpx.HTTPError) as e:
            error = e

        result = CaseResult(
            index=index,
            case=case,
            title=case.title(index),
            outcome=Outcome.classify(error is not None, case.error_expected),
            error=error,
        )
        self.report(result)
        return result

    def report(self, result: CaseResult):
        self.logger.info(result.title)
        if result.outcome is Outcome.EXPECTED_ERROR:
            self.logger.info("Received Expected Error: %s", result.error)
            self.logger.info("Success")
        elif result.outcome is Outcome.UNEXPECTED_ERROR:
            self.logger.error("Received Unexpected Error: %s", result.error)
        elif result.outcome is Outcome.UNEXPECTED_SUCCESS:
            self.logger.error("Received Unexpected Success: an error was expected")
        else:
            self.logger.info("Success")
