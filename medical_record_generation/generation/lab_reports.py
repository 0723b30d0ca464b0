"""
Laboratory Report Batches

Generates one report per requested test type, sequentially, isolating
failures: a bad test type or a failed generation is reported through the
progress callback and skipped, never raised.
"""

from typing import Callable, Dict, Iterable, Optional, Union

from loguru import logger

from medical_record_generation.core.config import ModelEndpointConfig
from medical_record_generation.core.enums import LabTestType
from medical_record_generation.core.exceptions import (
    ConfigurationError,
    MedicalRecordGenerationError,
)
from medical_record_generation.generation.entity_generator import LabReportGenerator
from medical_record_generation.generation.options import BasicData, LabReportOptions
from medical_record_generation.schema.entities import LaboratoryReport

# (test type, report or None on failure, 1-based index, total)
ProgressCallback = Callable[
    [Union[LabTestType, str], Optional[LaboratoryReport], int, int], None
]


def _coerce_test_type(value: Union[LabTestType, str]) -> LabTestType:
    if isinstance(value, LabTestType):
        return value
    return LabTestType(str(value).strip())


async def generate_laboratory_reports(
    generator: LabReportGenerator,
    config: ModelEndpointConfig,
    basic_data: BasicData,
    test_types: Iterable[Union[LabTestType, str]],
    on_progress: Optional[ProgressCallback] = None,
) -> Dict[LabTestType, LaboratoryReport]:
    """
    Generate laboratory reports for ``basic_data.patient``.

    Args:
        generator: Lab report generator
        config: Endpoint configuration
        basic_data: Patient and, optionally, the ordering provider
        test_types: Requested panels; strings are matched to LabTestType values
        on_progress: Called once per requested test type, in order

    Returns:
        Successful reports keyed by test type, in request order

    Raises:
        ConfigurationError: Endpoint configuration is unusable
    """
    config.validate()

    requested = list(test_types)
    total = len(requested)
    reports: Dict[LabTestType, LaboratoryReport] = {}

    logger.info(f"Generating {total} laboratory report(s)")

    for index, raw_type in enumerate(requested, start=1):
        try:
            test_type = _coerce_test_type(raw_type)
        except ValueError:
            logger.warning(f"[{index}/{total}] Unknown lab test type: {raw_type}")
            _notify(on_progress, raw_type, None, index, total)
            continue

        options = LabReportOptions(
            patient=basic_data.patient, test_type=test_type, provider=basic_data.provider
        )
        try:
            report = await generator.generate(config, options)
        except ConfigurationError:
            raise
        except MedicalRecordGenerationError as e:
            logger.error(f"[{index}/{total}] Failed to generate {test_type.value}: {e}")
            _notify(on_progress, test_type, None, index, total)
            continue

        reports[test_type] = report
        logger.info(f"[{index}/{total}] {test_type.value} generated successfully")
        _notify(on_progress, test_type, report, index, total)

    logger.info(f"Generated {len(reports)}/{total} laboratory reports")
    return reports


def _notify(
    on_progress: Optional[ProgressCallback],
    test_type: Union[LabTestType, str],
    report: Optional[LaboratoryReport],
    index: int,
    total: int,
) -> None:
    if on_progress is not None:
        on_progress(test_type, report, index, total)
