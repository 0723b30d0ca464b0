"""
Normalizers - Deterministic Completion of Validated Entities

Model output passes schema validation before it reaches this module. The
functions here fill the fields the model may leave out (identifiers, age,
billing details) and enforce rules the prompt alone cannot guarantee.

Rules:
    1. Every function is pure: inputs are never mutated, copies are returned
    2. Present values are kept; only missing ones are filled
    3. Idempotent: normalize(normalize(x)) == normalize(x)
    4. Deterministic: derived values come from digests, never from a RNG

Pipeline Position:
    Orchestrator → SchemaRegistry.validate → [Normalizers] → Cache → caller
                                              ^^^^^^^^^^^
                                              You are here
"""

import hashlib
import re
from datetime import date
from typing import List, Optional

from medical_record_generation.core.constants import (
    MRN_PREFIX,
    PATIENT_ID_PREFIX,
    PHARMACY_NAMES,
)
from medical_record_generation.core.enums import LabTestType
from medical_record_generation.schema.dates import compute_age, parse_date
from medical_record_generation.schema.entities import (
    CMS1500Claim,
    ClaimInfo,
    InsuranceInfo,
    LaboratoryReport,
    Patient,
    Pharmacy,
    Provider,
    ServiceLine,
    VisitReportCollection,
)


# =============================================================================
# STAGE 1: IDENTIFIERS
# =============================================================================


def _patient_digest(patient: Patient) -> str:
    material = f"{patient.last_name}|{patient.first_name}|{patient.date_of_birth}"
    return hashlib.sha256(material.lower().encode("utf-8")).hexdigest()


def _digits(digest: str, offset: int, count: int) -> str:
    """``count`` decimal digits taken from a hex digest."""
    value = int(digest[offset : offset + 12], 16)
    return str(value % (10**count)).zfill(count)


def derive_patient_id(patient: Patient) -> str:
    """
    Stable identifier for a patient that has none.

    Example:
        >>> derive_patient_id(jane)
        'PAT-482913'
    """
    return f"{PATIENT_ID_PREFIX}{_digits(_patient_digest(patient), 0, 6)}"


def patient_identifier(patient: Patient) -> str:
    """The patient's own id, or the derived one."""
    return patient.id or derive_patient_id(patient)


def format_patient_name(patient: Patient) -> str:
    """Display name in the "Last, First M" form."""
    name = f"{patient.last_name}, {patient.first_name}"
    if patient.middle_initial:
        name += f" {patient.middle_initial.strip().rstrip('.')}"
    return name


# =============================================================================
# STAGE 2: DEMOGRAPHICS
# =============================================================================


def default_pharmacy(patient: Patient) -> Pharmacy:
    """A neighbourhood pharmacy chosen from the patient digest."""
    digest = _patient_digest(patient)
    name = PHARMACY_NAMES[int(digest[12:16], 16) % len(PHARMACY_NAMES)]
    area_code = patient.contact.phone[1:4] if patient.contact.phone.startswith("(") else "555"
    return Pharmacy(
        name=name,
        address=patient.address.one_line(),
        phone=f"({area_code}) 555-{_digits(digest, 16, 4)}",
    )


def normalize_patient(patient: Patient, today: Optional[date] = None) -> Patient:
    """
    Fill display name, age, identifiers and pharmacy.

    Args:
        patient: Validated patient
        today: Reference date for the age (defaults to today)

    Returns:
        A completed copy of ``patient``
    """
    update = {}
    if not patient.name:
        update["name"] = format_patient_name(patient)
    if patient.age is None:
        age = compute_age(patient.date_of_birth, today)
        if age is not None:
            update["age"] = age

    patient_id = patient_identifier(patient)
    if not patient.id:
        update["id"] = patient_id
    if not patient.medical_record_number:
        update["medical_record_number"] = (
            f"{MRN_PREFIX}{_digits(_patient_digest(patient), 24, 8)}"
        )
    if not patient.account_number:
        update["account_number"] = patient_id
    if patient.pharmacy is None:
        update["pharmacy"] = default_pharmacy(patient)

    return patient.model_copy(update=update, deep=True) if update else patient


def normalize_provider(provider: Provider) -> Provider:
    """Default the signature and billing block from the facility."""
    update = {}
    if not provider.signature:
        update["signature"] = provider.name
    if not provider.billing_name:
        update["billing_name"] = provider.facility_name
    if not provider.billing_address:
        update["billing_address"] = provider.facility_address.one_line()
    if not provider.billing_phone:
        update["billing_phone"] = provider.facility_phone
    if not provider.billing_npi:
        update["billing_npi"] = provider.facility_npi
    return provider.model_copy(update=update, deep=True) if update else provider


# =============================================================================
# STAGE 3: INSURANCE
# =============================================================================


def apply_subscriber_rule(insurance: InsuranceInfo, patient: Patient) -> InsuranceInfo:
    """Overwrite the subscriber fields with the patient's own."""
    return insurance.model_copy(
        update={
            "subscriber_name": patient.name or format_patient_name(patient),
            "subscriber_dob": patient.date_of_birth,
            "subscriber_gender": patient.gender,
            "address": patient.address.model_copy(deep=True),
            "phone": patient.contact.phone,
        },
        deep=True,
    )


def normalize_insurance(
    insurance: InsuranceInfo,
    patient: Patient,
    patient_is_subscriber: bool,
    include_secondary: bool,
) -> InsuranceInfo:
    if patient_is_subscriber:
        insurance = apply_subscriber_rule(insurance, patient)
    if not include_secondary and (
        insurance.secondary_insurance is not None or insurance.secondary_insured is not None
    ):
        insurance = insurance.model_copy(
            update={"secondary_insurance": None, "secondary_insured": None}
        )
    return insurance


# =============================================================================
# STAGE 4: CLAIMS
# =============================================================================

_AMOUNT_PATTERN = re.compile(r"-?\d+(?:\.\d+)?")


def parse_amount(value: str) -> Optional[float]:
    """Dollar amount from text such as "$1,250.00". None if absent."""
    match = _AMOUNT_PATTERN.search(value.replace(",", ""))
    return float(match.group()) if match else None


def total_charges(service_lines: List[ServiceLine]) -> str:
    total = 0.0
    for line in service_lines:
        amount = parse_amount(line.charges)
        if amount is not None:
            total += amount
    return f"{total:.2f}"


def normalize_claim_info(claim_info: ClaimInfo) -> ClaimInfo:
    if claim_info.total_charges:
        return claim_info
    return claim_info.model_copy(
        update={"total_charges": total_charges(claim_info.service_lines)}
    )


def normalize_claim(claim: CMS1500Claim) -> CMS1500Claim:
    claim_info = normalize_claim_info(claim.claim_info)
    if claim_info is claim.claim_info:
        return claim
    return claim.model_copy(update={"claim_info": claim_info})


# =============================================================================
# STAGE 5: CLINICAL RECORDS
# =============================================================================


def normalize_visit_reports(collection: VisitReportCollection) -> VisitReportCollection:
    """Order visits oldest first; undated visits keep their order at the end."""
    dated = [
        (parse_date(report.visit.date), index, report)
        for index, report in enumerate(collection.visits)
    ]
    ordered = sorted(dated, key=lambda item: (item[0] is None, item[0] or date.min, item[1]))
    visits = [report for _, _, report in ordered]
    if visits == collection.visits:
        return collection
    return collection.model_copy(update={"visits": visits})


def normalize_lab_report(report: LaboratoryReport, test_type: LabTestType) -> LaboratoryReport:
    if report.test_type is not None:
        return report
    return report.model_copy(update={"test_type": test_type})
